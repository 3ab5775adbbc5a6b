"""
Repositories provide the commits and patches that are searched for cherry-picks.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import logging
import threading
from typing import Dict, Iterable, List

from cherry_harvest.errors import PatchUnavailableError
from cherry_harvest.model import Commit

log = logging.getLogger(__name__)


class Repository:
    """Collection of commits, identified by a name.

    Implementations raise RepositoryAccessError from commits() if they cannot
    enumerate their history, and PatchUnavailableError from patch() if the
    diff of a single commit cannot be produced.
    """

    def __init__(self, name: str):
        self.name = name

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r})"

    def commits(self) -> List[Commit]:
        """Return all commits of the repository, each id once."""
        raise NotImplementedError

    def patch(self, commit: Commit) -> str:
        """Return the patch text of a commit against its first parent."""
        if commit.patch is None:
            raise PatchUnavailableError(commit.id, "no patch attached to commit")
        return commit.patch


def unique_commits(commits: Iterable[Commit]) -> List[Commit]:
    """Drop repeated commit ids, keeping the first occurrence."""
    seen = set()
    result = []
    for commit in commits:
        if commit.id in seen:
            continue
        seen.add(commit.id)
        result.append(commit)
    return result


class InMemoryRepository(Repository):
    """Repository over already materialized commits that carry their patch text."""

    def __init__(self, name: str, commits: Iterable[Commit]):
        super().__init__(name)
        self._commits = tuple(unique_commits(commits))

    def commits(self) -> List[Commit]:
        return list(self._commits)


class MergedRepository(Repository):
    """Union of several repositories, e.g. of a fork network.

    Commits present in several repositories are listed once, and their
    patch is produced by the first repository that contains them.
    """

    def __init__(self, name: str, repositories: Iterable[Repository]):
        super().__init__(name)
        self.repositories = list(repositories)
        self._lock = threading.Lock()
        self._commits = None
        self._owners: Dict[str, Repository] = {}

    def commits(self) -> List[Commit]:
        with self._lock:
            if self._commits is None:
                commits = []
                owners = {}
                for repository in self.repositories:
                    for commit in repository.commits():
                        if commit.id in owners:
                            continue
                        owners[commit.id] = repository
                        commits.append(commit)
                log.debug(
                    "Merged %d commits of %d repositories into %s", len(commits), len(self.repositories), self.name
                )
                self._owners = owners
                self._commits = tuple(commits)
            return list(self._commits)

    def patch(self, commit: Commit) -> str:
        if commit.id not in self._owners:
            self.commits()
        owner = self._owners.get(commit.id)
        if owner is None:
            raise PatchUnavailableError(commit.id, f"commit is not part of {self.name}")
        return owner.patch(commit)


def merge_repositories(name: str, repositories: Iterable[Repository]) -> Repository:
    """Return one repository holding the commits of all given repositories."""
    return MergedRepository(name, repositories)
