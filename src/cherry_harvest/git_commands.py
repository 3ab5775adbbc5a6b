#!/usr/bin/env python3

"""
Git command wrapper methods, and a repository that reads its history with git.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import logging
import os
import threading
from typing import Dict, List, Optional

from cherry_harvest.errors import PatchUnavailableError, RepositoryAccessError
from cherry_harvest.model import Commit
from cherry_harvest.repository import Repository
from cherry_harvest.utils import run_command

log = logging.getLogger(__name__)

# Separators git emits for the placeholders %x1f and %x1e
FIELD_SEPARATOR = "\x1f"
RECORD_SEPARATOR = "\x1e"

# id, parents, committer time, author, committer, raw message
LOG_FORMAT = "%H%x1f%P%x1f%ct%x1f%an <%ae>%x1f%cn <%ce>%x1f%B%x1e"

CLONE_URL_PREFIXES = ("http://", "https://", "ssh://", "git://", "file://", "git@")


def is_clone_url(location: str) -> bool:
    """Return whether a repository location has to be cloned before it can be searched."""
    return location.startswith(CLONE_URL_PREFIXES)


def parse_log_output(output: str) -> List[Commit]:
    """Turn the output of 'git log' with LOG_FORMAT into commits."""
    commits = []
    for record in output.split(RECORD_SEPARATOR):
        record = record.lstrip("\n")
        if not record.strip():
            continue
        fields = record.split(FIELD_SEPARATOR, 5)
        if len(fields) != 6:
            log.warning("Ignoring malformed log record %r", record[:80])
            continue
        commit_id, parents, commit_time, author, committer, message = fields
        try:
            timestamp = int(commit_time)
        except ValueError:
            log.warning("Ignoring commit %s with invalid commit time %r", commit_id, commit_time)
            continue
        commits.append(
            Commit(
                id=commit_id,
                parent_ids=tuple(parents.split()),
                timestamp=timestamp,
                message=message.rstrip("\n"),
                author=author,
                committer=committer,
            )
        )
    return commits


def git_log_commits(path: str) -> List[Commit]:
    """Return all commits reachable from any ref of the repository at path."""
    success, stdout, stderr = run_command(["git", "-C", path, "log", "--all", f"--format={LOG_FORMAT}"])
    if not success:
        raise RepositoryAccessError(f"Failed to list commits of repository {path}: {stderr.strip()}")
    return parse_log_output(stdout)


def git_show_patch(path: str, commit_id: str) -> str:
    """Return the diff of a commit against its parent.

    Bytes that are not valid UTF-8 are kept as surrogate escapes, so patches that
    differ only in such bytes still differ.
    """
    success, stdout, stderr = run_command(
        ["git", "-C", path, "show", "--format=", "--no-color", "--no-ext-diff", commit_id], errors="surrogateescape"
    )
    if not success:
        raise PatchUnavailableError(commit_id, stderr.strip())
    return stdout


def clone_repository(url: str, directory: str) -> str:
    """Clone the repository at url into directory, and return the path of the clone."""
    log.info("Cloning %s into %s", url, directory)
    success, _, stderr = run_command(["git", "clone", "--quiet", "--no-checkout", url, directory])
    if not success:
        raise RepositoryAccessError(f"Failed to clone repository {url}: {stderr.strip()}")
    return directory


class GitRepository(Repository):
    """Repository backed by a local git directory.

    The history is read once on first use. Patches are produced on demand,
    and kept for later calls.
    """

    def __init__(self, path: str, name: Optional[str] = None):
        super().__init__(name if name else os.path.basename(os.path.abspath(path)))
        self.path = path
        self._lock = threading.Lock()
        self._commits = None
        self._patches: Dict[str, str] = {}

    def commits(self) -> List[Commit]:
        with self._lock:
            if self._commits is None:
                if not os.path.isdir(self.path):
                    raise RepositoryAccessError(f"Repository directory {self.path} does not exist")
                self._commits = tuple(git_log_commits(self.path))
                log.debug("Read %d commits from %s", len(self._commits), self.path)
            return list(self._commits)

    def patch(self, commit: Commit) -> str:
        if commit.patch is not None:
            return commit.patch
        with self._lock:
            cached = self._patches.get(commit.id)
        if cached is not None:
            return cached
        patch = git_show_patch(self.path, commit.id)
        with self._lock:
            self._patches[commit.id] = patch
        return patch
