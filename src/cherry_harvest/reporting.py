"""
Collect statistics of a search run.

A SearchReporter is handed to the search methods and the orchestrator
explicitly. It aggregates what would otherwise only end up in the log:
skipped commits, message references without a matching commit, and
failed (repository, method) runs.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import logging
import threading
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnmatchedReference:
    """A commit message references a source commit that is not part of the searched commits."""

    repository: str
    search_method: str
    target_id: str
    source_id: str


@dataclass(frozen=True)
class FailedRun:
    """A search method could not be run on a repository."""

    repository: str
    search_method: str
    error: str


class SearchReporter:
    """Thread-safe counters for one search run."""

    def __init__(self):
        self._lock = threading.Lock()
        self._commits_per_repository: Dict[str, int] = {}
        self._skipped = Counter()
        self._results = Counter()
        self._unmatched: List[UnmatchedReference] = []
        self._failures: List[FailedRun] = []

    def searched(self, repository: str, nr_commits: int):
        """Record the number of commits enumerated for a repository."""
        with self._lock:
            self._commits_per_repository[repository] = nr_commits

    def skipped(self, repository: str, search_method: str, commit_id: str, reason: str):
        """Record a commit that a search method could not consider."""
        log.debug("%s skips commit %s of %s: %s", search_method, commit_id, repository, reason)
        with self._lock:
            self._skipped[(search_method, reason)] += 1

    def unmatched_reference(self, repository: str, search_method: str, target_id: str, source_id: str):
        log.debug("Commit %s of %s references unknown commit %s", target_id, repository, source_id)
        with self._lock:
            self._unmatched.append(UnmatchedReference(repository, search_method, target_id, source_id))

    def found(self, search_method: str, nr_results: int):
        with self._lock:
            self._results[search_method] += nr_results

    def failed(self, repository: str, search_method: str, error: Exception):
        with self._lock:
            self._failures.append(FailedRun(repository, search_method, str(error)))

    @property
    def unmatched_references(self) -> List[UnmatchedReference]:
        with self._lock:
            return list(self._unmatched)

    @property
    def failures(self) -> List[FailedRun]:
        with self._lock:
            return list(self._failures)

    def total_commits(self) -> int:
        with self._lock:
            return sum(self._commits_per_repository.values())

    def skipped_count(self, search_method: str = None, reason: str = None) -> int:
        """Return the number of skipped commits, optionally restricted to a method and reason."""
        with self._lock:
            return sum(
                count
                for (method, skip_reason), count in self._skipped.items()
                if (search_method is None or method == search_method) and (reason is None or skip_reason == reason)
            )

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "searched_repositories": len(self._commits_per_repository),
                "searched_commits_total": sum(self._commits_per_repository.values()),
                "skipped_commits_total": sum(self._skipped.values()),
                "skipped_commits": {
                    f"{method}:{reason}": count for (method, reason), count in sorted(self._skipped.items())
                },
                "unmatched_references_total": len(self._unmatched),
                "results": dict(sorted(self._results.items())),
                "failed_runs_total": len(self._failures),
            }
