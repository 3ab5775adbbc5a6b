"""
Store search results as JSON, for offline analysis.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import json
import logging
from collections import Counter
from typing import Iterable, List, Optional

from cherry_harvest.model import Commit, SearchResult

log = logging.getLogger(__name__)


def commit_to_record(commit: Commit) -> dict:
    return {
        "id": commit.id,
        "parent_ids": list(commit.parent_ids),
        "message": commit.message,
        "author": commit.author,
        "committer": commit.committer,
        "time": commit.timestamp,
    }


def result_to_record(result: SearchResult) -> dict:
    """Return a plain dict holding the method name and both commits of a result."""
    return {
        "search_method": result.search_method,
        "cherry": commit_to_record(result.cherry_pick.source.commit),
        "target": commit_to_record(result.cherry_pick.target.commit),
    }


def results_summary(results: Iterable[SearchResult], total_number_of_commits: int, stats: Optional[dict] = None):
    """Return the summary section of a result document."""
    per_method = Counter(result.search_method for result in results)
    summary = {
        "total_number_of_results": sum(per_method.values()),
        "total_number_of_commits": total_number_of_commits,
        "results_per_method": dict(sorted(per_method.items())),
    }
    if stats is not None:
        summary["stats"] = stats
    return summary


def results_document(
    results: List[SearchResult], total_number_of_commits: int, stats: Optional[dict] = None, repositories=None
) -> dict:
    document = {
        "summary": results_summary(results, total_number_of_commits, stats),
        "results": [result_to_record(result) for result in results],
    }
    if repositories is not None:
        document["repositories"] = list(repositories)
    return document


def write_results(
    path: str,
    results: List[SearchResult],
    total_number_of_commits: int,
    stats: Optional[dict] = None,
    repositories=None,
):
    """Write the results and their summary to a JSON file."""
    document = results_document(results, total_number_of_commits, stats=stats, repositories=repositories)
    with open(path, "w", encoding="utf-8") as output_file:
        json.dump(document, output_file, sort_keys=True, indent=2)
    log.info("Wrote %d results to %s", len(results), path)
