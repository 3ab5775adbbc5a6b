#!/usr/bin/env python3

"""
Find cherry-picked commits in git repositories.

Git does not record which commits have been cherry-picked from where. This
tool reconstructs (source, target) pairs of commits that carry the same
change, with three search methods:

  message  commits that carry a '(cherry picked from commit <id>)' line
  exact    commits with identical patches, ignoring line numbers
  lsh      commits with similar patches, via MinHash and locality sensitive hashing

Repositories are given as local paths or as clone URLs. Clones are placed
in a temporary directory, and removed after the search.

Usage:
    git-cherry-harvest [options] <repository>...
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import argparse
import contextlib
import logging
import os
import sys
import tempfile
from typing import Dict, List

from cherry_harvest.errors import ConfigurationError, RepositoryAccessError
from cherry_harvest.git_commands import GitRepository, clone_repository, is_clone_url
from cherry_harvest.lsh_index import LshConfig
from cherry_harvest.orchestrator import (
    ACCESS_STEP,
    METHOD_CHOICES,
    create_method,
    method_agreement,
    search_with_multiple,
)
from cherry_harvest.reporting import SearchReporter
from cherry_harvest.repository import Repository, merge_repositories
from cherry_harvest.results import write_results

log = logging.getLogger(__name__)


def parse_key_value_parameters(parameters: str) -> Dict[str, str]:
    """Split 'key=value,key=value' into a dictionary."""
    parameter_dict = {}
    if not parameters:
        return parameter_dict
    for part in parameters.split(","):
        if "=" not in part:
            raise ConfigurationError(f"Expected '=' sign in part {part} of {parameters}")
        key, value = part.split("=", 1)
        parameter_dict[key.strip()] = value.strip()
    return parameter_dict


def parse_args(args_override: list = None):
    """Parse command-line arguments."""

    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)

    parser.add_argument(
        "repositories",
        nargs="+",
        metavar="repository",
        help="Path or clone URL of a repository to search",
    )
    parser.add_argument(
        "--method",
        choices=sorted(METHOD_CHOICES),
        action="append",
        dest="methods",
        default=None,
        help="Search method to use, can be given multiple times (default: all methods)",
    )
    parser.add_argument(
        "--lsh",
        type=str,
        default="",
        help=(
            "Comma-separated key-value pairs for the lsh method"
            " (num_hashes, bands, rows, threshold, seed, max_workers)"
        ),
    )
    parser.add_argument(
        "--merge-network",
        default=False,
        action="store_true",
        help="Search the union of all given repositories, e.g. of a fork network, as one repository",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Write all results as JSON to the given file (default: %(default)s)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of parallel (repository, method) searches (default: chosen by the thread pool, min(32, CPUs + 4))",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Set the logging level (default: %(default)s)",
    )
    parser.add_argument(
        "-C",
        "--change-dir",
        type=str,
        help="Before starting any operation, change the working directory to the given directory",
    )

    return parser.parse_args(args_override)


def open_repositories(
    locations: List[str], stack: contextlib.ExitStack, reporter: SearchReporter
) -> List[Repository]:
    """Return a repository per location, cloning remote locations into a temporary directory.

    A location that cannot be cloned is recorded with the reporter and skipped.
    """
    repositories = []
    clone_dir = None
    for index, location in enumerate(locations):
        if not is_clone_url(location):
            repositories.append(GitRepository(location, name=location))
            continue
        if clone_dir is None:
            clone_dir = stack.enter_context(tempfile.TemporaryDirectory(prefix="cherry-harvest-"))
        name = location.rstrip("/").split("/")[-1]
        if name.endswith(".git"):
            name = name[: -len(".git")]
        try:
            path = clone_repository(location, os.path.join(clone_dir, f"{index}-{name}"))
        except RepositoryAccessError as e:
            log.warning("Skipping repository %s: %s", location, e)
            reporter.failed(location, ACCESS_STEP, e)
            continue
        repositories.append(GitRepository(path, name=location))
    if locations and not repositories:
        raise RepositoryAccessError(f"None of the {len(locations)} repositories could be cloned")
    return repositories


def harvest(args) -> int:
    """Search the repositories given on the command line, and report the results."""

    lsh_config = LshConfig.from_parameters(parse_key_value_parameters(args.lsh))
    method_choices = args.methods if args.methods else sorted(METHOD_CHOICES)
    methods = [
        create_method(choice, lsh_config=lsh_config, max_workers=args.workers)
        for choice in dict.fromkeys(method_choices)
    ]
    log.debug("Searching with methods %r", methods)

    reporter = SearchReporter()
    with contextlib.ExitStack() as stack:
        repositories = open_repositories(args.repositories, stack, reporter)
        if args.merge_network and len(repositories) > 1:
            repositories = [merge_repositories("network", repositories)]
        results = search_with_multiple(repositories, methods, reporter=reporter, max_workers=args.workers)

    stats = reporter.get_stats()
    log.debug("Search statistics: %r", stats)
    for method in methods:
        log.info("%s: %d results", method.name, sum(1 for result in results if result.search_method == method.name))
    agreement = method_agreement(results)
    log.info(
        "Found %d distinct cherry-picks in %d commits of %d repositories",
        len(agreement),
        stats["searched_commits_total"],
        stats["searched_repositories"],
    )
    for failure in reporter.failures:
        log.warning("Failed %s on %s: %s", failure.search_method, failure.repository, failure.error)

    if args.output:
        write_results(
            args.output,
            results,
            total_number_of_commits=stats["searched_commits_total"],
            stats=stats,
            repositories=args.repositories,
        )
    else:
        for result in results:
            print(f"{result.search_method} {result.cherry_pick.source.id} {result.cherry_pick.target.id}")
    return 0


def main(args_override: list = None):
    """Main function to parse arguments, and run the search."""

    args = parse_args(args_override)

    if args.log_level == "DEBUG":
        logging.basicConfig(
            level=args.log_level,
            format="[%(levelname)-7s] %(asctime)s %(name)s:%(lineno)d %(message)s",
        )
    elif args.log_level == "INFO":
        logging.basicConfig(
            level=args.log_level,
            format="[%(levelname)-7s] %(message)s",
        )
    else:
        logging.basicConfig(
            level=args.log_level,
            format="%(message)s",
        )

    try:
        if args.change_dir:
            log.debug("Changing to directory %s", args.change_dir)
            os.chdir(args.change_dir)
        return harvest(args)
    except Exception as e:
        log.error("Aborting with exception %s", e)
        log.debug("Exception with stack trace:", exc_info=True)
    return 1


if __name__ == "__main__":
    app_status = main()
    log.info("Exit git-cherry-harvest with status %d", app_status)
    sys.exit(app_status)
