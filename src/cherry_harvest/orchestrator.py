"""
Run search methods over repositories and collect their results.

Each (repository, method) combination runs as its own task. A failing task
is logged and recorded with the reporter, and does not affect its siblings.
Only configuration errors, and a run in which no repository can be
accessed at all, are raised to the caller.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import logging
import time
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from cherry_harvest.errors import ConfigurationError, RepositoryAccessError
from cherry_harvest.lsh_index import LshConfig
from cherry_harvest.lsh_matching import ApproximateDiffMatch
from cherry_harvest.model import SearchResult
from cherry_harvest.reporting import SearchReporter
from cherry_harvest.repository import Repository
from cherry_harvest.search_methods import ExactDiffMatch, MessageScan, SearchMethod
from cherry_harvest.utils import parallel_map

log = logging.getLogger(__name__)

# Method label used in the reporter for failures to enumerate a repository
ACCESS_STEP = "enumerate-commits"

METHOD_CHOICES = {
    "message": MessageScan,
    "exact": ExactDiffMatch,
    "lsh": ApproximateDiffMatch,
}


def create_method(
    choice: str, lsh_config: Optional[LshConfig] = None, max_workers: Optional[int] = None
) -> SearchMethod:
    """Return the search method for a short name as used on the command line."""
    if choice not in METHOD_CHOICES:
        raise ConfigurationError(f"Unknown search method {choice}, supported: {', '.join(sorted(METHOD_CHOICES))}")
    if choice == "lsh":
        return ApproximateDiffMatch(lsh_config)
    if choice == "exact":
        return ExactDiffMatch(max_workers=max_workers)
    return MessageScan()


def _validate(repositories: List[Repository], methods: List[SearchMethod], max_workers: Optional[int]) -> None:
    if max_workers is not None:
        if isinstance(max_workers, bool) or not isinstance(max_workers, int) or max_workers < 1:
            raise ConfigurationError(f"Number of workers must be a positive integer, got {max_workers!r}")
    if not methods:
        raise ConfigurationError("At least one search method is required")
    names = set()
    for method in methods:
        if not isinstance(method, SearchMethod):
            raise ConfigurationError(f"Expected a search method, got {method!r}")
        if method.name in names:
            raise ConfigurationError(f"Search method {method.name} is given more than once")
        names.add(method.name)
    for repository in repositories:
        if not isinstance(repository, Repository):
            raise ConfigurationError(f"Expected a repository, got {repository!r}")


def search_with(
    repositories: Union[Repository, Iterable[Repository]],
    method: SearchMethod,
    reporter: Optional[SearchReporter] = None,
    max_workers: Optional[int] = None,
) -> List[SearchResult]:
    """Run one search method over all repositories, and return the flattened results."""
    return search_with_multiple(repositories, [method], reporter=reporter, max_workers=max_workers)


def search_with_multiple(
    repositories: Union[Repository, Iterable[Repository]],
    methods: Iterable[SearchMethod],
    reporter: Optional[SearchReporter] = None,
    max_workers: Optional[int] = None,
) -> List[SearchResult]:
    """Run every search method over every repository.

    Results are tagged with the name of the method that found them. A pair
    found by several methods is reported once per method, a pair found by
    the same method in several repositories only once. The returned list is
    sorted by method name, then source and target.
    """
    if isinstance(repositories, Repository):
        repositories = [repositories]
    repositories = list(repositories)
    methods = list(methods)
    _validate(repositories, methods, max_workers)
    reporter = reporter if reporter is not None else SearchReporter()
    start = time.time()

    def enumerate_commits(repository: Repository) -> bool:
        try:
            commits = repository.commits()
        except Exception as e:
            log.warning("Failed to enumerate commits of %s: %s", repository.name, e)
            log.debug("Exception with stack trace:", exc_info=True)
            reporter.failed(repository.name, ACCESS_STEP, e)
            return False
        reporter.searched(repository.name, len(commits))
        log.debug("Repository %s has %d commits", repository.name, len(commits))
        return True

    accessible = [
        repository
        for repository, success in zip(repositories, parallel_map(enumerate_commits, repositories, max_workers))
        if success
    ]
    if repositories and not accessible:
        raise RepositoryAccessError(f"None of the {len(repositories)} repositories could be accessed")

    def run(task: Tuple[Repository, SearchMethod]) -> Set[SearchResult]:
        repository, method = task
        try:
            return method.search(repository, reporter)
        except Exception as e:
            log.warning("Search method %s failed on %s: %s", method.name, repository.name, e)
            log.debug("Exception with stack trace:", exc_info=True)
            reporter.failed(repository.name, method.name, e)
            return set()

    tasks = [(repository, method) for repository in accessible for method in methods]
    results = set()
    for task_results in parallel_map(run, tasks, max_workers):
        results |= task_results

    per_method = defaultdict(int)
    for result in results:
        per_method[result.search_method] += 1
    for method in methods:
        reporter.found(method.name, per_method[method.name])

    log.debug(
        "Searched %d repositories with %d methods in %.3f seconds, found %d results",
        len(accessible),
        len(methods),
        time.time() - start,
        len(results),
    )
    return sorted(results, key=lambda result: result.sort_key)


def method_agreement(results: Iterable[SearchResult]) -> Dict[Tuple[str, str], Set[str]]:
    """Return, for each (source, target) pair, the names of the methods that found it."""
    agreement = defaultdict(set)
    for result in results:
        agreement[result.cherry_pick.ids].add(result.search_method)
    return dict(agreement)
