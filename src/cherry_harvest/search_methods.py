"""
Search methods that find cherry-picks within one repository.

Every method implements find(repository) and returns the set of CherryPick
values it discovered. Sets deduplicate, as picks of the same two commit ids
are equal.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import logging
import re
import time
from collections import defaultdict
from typing import Iterable, List, Optional, Set, Tuple

from cherry_harvest import CHERRY_PICK_MARKER
from cherry_harvest.errors import ConfigurationError, PatchUnavailableError
from cherry_harvest.model import CherryPick, Commit, SearchResult, patch_fingerprint
from cherry_harvest.reporting import SearchReporter
from cherry_harvest.repository import Repository
from cherry_harvest.utils import parallel_map

log = logging.getLogger(__name__)

# Reasons for which a commit is not considered by a method
SKIP_NOT_SINGLE_PARENT = "not-single-parent"
SKIP_EMPTY_PATCH = "empty-patch"
SKIP_PATCH_UNAVAILABLE = "patch-unavailable"

MARKER_PATTERN = re.compile(re.escape(CHERRY_PICK_MARKER) + r"\s*([0-9a-fA-F]+)\s*\)")


class SearchMethod:
    """Strategy to find cherry-picks in a repository."""

    name = "SearchMethod"

    def find(self, repository: Repository, reporter: Optional[SearchReporter] = None) -> Set[CherryPick]:
        raise NotImplementedError

    def search(self, repository: Repository, reporter: Optional[SearchReporter] = None) -> Set[SearchResult]:
        """Run find() and tag each pick with the name of this method."""
        return {SearchResult(self.name, pick) for pick in self.find(repository, reporter)}

    def __repr__(self):
        return f"{type(self).__name__}()"


def eligible_commits(
    repository: Repository,
    search_method: str,
    reporter: SearchReporter,
    commits: Optional[Iterable[Commit]] = None,
    max_workers: Optional[int] = None,
) -> List[Tuple[Commit, str]]:
    """Return the commits with exactly one parent and a non-empty patch, together with their patch.

    Commits whose patch cannot be produced are reported as skipped, and the
    remaining commits are returned in enumeration order.
    """
    if commits is None:
        commits = repository.commits()

    single_parent = []
    for commit in commits:
        if commit.has_single_parent():
            single_parent.append(commit)
        else:
            reporter.skipped(repository.name, search_method, commit.id, SKIP_NOT_SINGLE_PARENT)

    def load_patch(commit: Commit) -> Optional[str]:
        try:
            return repository.patch(commit)
        except PatchUnavailableError as e:
            log.debug("Skipping commit %s of %s: %s", commit.id, repository.name, e)
            reporter.skipped(repository.name, search_method, commit.id, SKIP_PATCH_UNAVAILABLE)
            return None

    patches = parallel_map(load_patch, single_parent, max_workers=max_workers)

    eligible = []
    for commit, patch in zip(single_parent, patches):
        if patch is None:
            continue
        if not patch.strip():
            reporter.skipped(repository.name, search_method, commit.id, SKIP_EMPTY_PATCH)
            continue
        eligible.append((commit, patch))
    log.debug(
        "%s considers %d of %d single parent commits of %s",
        search_method,
        len(eligible),
        len(single_parent),
        repository.name,
    )
    return eligible


def oldest_with_rest(commits: Iterable[Commit]) -> Set[CherryPick]:
    """Pair the oldest of a group of equivalent commits with each other member.

    The group is ordered by timestamp and id, so for equal timestamps the
    smallest id becomes the source.
    """
    ordered = sorted(set(commits), key=lambda commit: commit.sort_key)
    if len(ordered) < 2:
        return set()
    source = ordered[0]
    return {CherryPick.construct(source, target) for target in ordered[1:]}


def referenced_source_ids(message: str) -> List[str]:
    """Return the lower case commit ids of all cherry-pick markers of a commit message, in order."""
    if not message:
        return []
    return [match.group(1).lower() for match in MARKER_PATTERN.finditer(message)]


class MessageScan(SearchMethod):
    """Find picks recorded by 'git cherry-pick -x' in the message of the target commit."""

    name = "MessageScan"

    def find(self, repository: Repository, reporter: Optional[SearchReporter] = None) -> Set[CherryPick]:
        reporter = reporter if reporter is not None else SearchReporter()
        start = time.time()
        commits = repository.commits()
        by_id = {commit.id.lower(): commit for commit in commits}

        picks = set()
        for commit in commits:
            for source_id in referenced_source_ids(commit.message):
                source = by_id.get(source_id)
                if source is None:
                    reporter.unmatched_reference(repository.name, self.name, commit.id, source_id)
                    continue
                if source.id == commit.id:
                    log.debug("Commit %s of %s references itself, ignoring", commit.id, repository.name)
                    continue
                if source.timestamp > commit.timestamp:
                    log.debug("Cherry-pick %s is older than its recorded source %s", commit.id, source.id)
                picks.add(CherryPick.new(source, commit))

        log.debug(
            "%s found %d picks in %d commits of %s in %.3f seconds",
            self.name,
            len(picks),
            len(commits),
            repository.name,
            time.time() - start,
        )
        return picks


class ExactDiffMatch(SearchMethod):
    """Find commits whose normalized patches are identical."""

    name = "ExactDiffMatch"

    def __init__(self, max_workers: Optional[int] = None):
        if max_workers is not None and (not isinstance(max_workers, int) or max_workers <= 0):
            raise ConfigurationError(f"Number of workers must be a positive integer, got {max_workers!r}")
        self.max_workers = max_workers

    def find(self, repository: Repository, reporter: Optional[SearchReporter] = None) -> Set[CherryPick]:
        reporter = reporter if reporter is not None else SearchReporter()
        start = time.time()
        eligible = eligible_commits(repository, self.name, reporter, max_workers=self.max_workers)

        fingerprints = parallel_map(lambda entry: patch_fingerprint(entry[1]), eligible, max_workers=self.max_workers)
        groups = defaultdict(list)
        for (commit, _), fingerprint in zip(eligible, fingerprints):
            groups[fingerprint].append(commit)

        picks = set()
        for members in groups.values():
            if len(members) > 1:
                picks |= oldest_with_rest(members)

        log.debug(
            "%s found %d picks in %d groups of %s in %.3f seconds",
            self.name,
            len(picks),
            len(groups),
            repository.name,
            time.time() - start,
        )
        return picks
