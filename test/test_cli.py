"""Tests for the git-cherry-harvest command line."""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import contextlib
import json
import os
import tempfile

import pytest

from cherry_harvest.cherry_harvest import main, open_repositories, parse_args, parse_key_value_parameters
from cherry_harvest.errors import ConfigurationError
from cherry_harvest.orchestrator import ACCESS_STEP
from cherry_harvest.reporting import SearchReporter
from cherry_harvest.utils import run_command

GIT_ENV = {
    "GIT_AUTHOR_NAME": "Test User",
    "GIT_AUTHOR_EMAIL": "test@example.com",
    "GIT_COMMITTER_NAME": "Test User",
    "GIT_COMMITTER_EMAIL": "test@example.com",
}


@contextlib.contextmanager
def pushd(new_dir):
    """Similar to shell's pushd, popd is implicit"""
    previous_dir = os.getcwd()
    os.chdir(new_dir)
    try:
        yield
    finally:
        os.chdir(previous_dir)


def git(args, timestamp=None) -> str:
    env = dict(GIT_ENV)
    if timestamp is not None:
        env["GIT_AUTHOR_DATE"] = f"@{timestamp} +0000"
        env["GIT_COMMITTER_DATE"] = f"@{timestamp} +0000"
    success, stdout, stderr = run_command(["git", "-c", "commit.gpgsign=false"] + args, env=env)
    assert success, f"git {args} failed with: {stderr}"
    return stdout.strip()


def create_picked_repository(path):
    """Create a repository with one fix, picked onto a second branch."""
    with pushd(path):
        git(["init", "-q", "."])
        with open("main.py", "w", encoding="utf-8") as source_file:
            source_file.write("def answer():\n    return 41\n\n\nprint(answer())\n")
        git(["add", "main.py"])
        git(["commit", "-q", "-m", "Add answer"], timestamp=100)
        base = git(["rev-parse", "HEAD"])
        with open("main.py", "w", encoding="utf-8") as source_file:
            source_file.write("def answer():\n    return 42\n\n\nprint(answer())\n")
        git(["commit", "-q", "-a", "-m", "Fix answer"], timestamp=200)
        fix = git(["rev-parse", "HEAD"])
        git(["checkout", "-q", "-b", "release", base])
        git(["cherry-pick", "-x", fix], timestamp=300)
        pick = git(["rev-parse", "HEAD"])
    return fix, pick


def test_parse_key_value_parameters():
    assert parse_key_value_parameters("") == {}
    assert parse_key_value_parameters("bands=10, threshold=0.8") == {"bands": "10", "threshold": "0.8"}
    with pytest.raises(ConfigurationError):
        parse_key_value_parameters("bands")


def test_parse_args():
    args = parse_args(["--method", "exact", "--method", "lsh", "--lsh", "rows=4", "repo1", "repo2"])

    assert args.methods == ["exact", "lsh"]
    assert args.lsh == "rows=4"
    assert args.repositories == ["repo1", "repo2"]
    assert args.workers is None
    assert not args.merge_network

    with pytest.raises(SystemExit):
        parse_args(["--method", "fuzzy", "repo"])


def test_cli_writes_results():
    with tempfile.TemporaryDirectory() as tmpdir:
        repository = os.path.join(tmpdir, "repository")
        os.mkdir(repository)
        fix, pick = create_picked_repository(repository)
        output = os.path.join(tmpdir, "results.json")

        assert main(["--output", output, "--log-level", "WARNING", repository]) == 0

        with open(output, encoding="utf-8") as result_file:
            document = json.load(result_file)

    assert document["summary"]["total_number_of_commits"] == 3
    assert document["summary"]["results_per_method"] == {
        "ApproximateDiffMatch": 1,
        "ExactDiffMatch": 1,
        "MessageScan": 1,
    }
    for record in document["results"]:
        assert record["cherry"]["id"] == fix
        assert record["target"]["id"] == pick
        assert record["target"]["time"] == 300


def test_cli_prints_results(capsys):
    with tempfile.TemporaryDirectory() as tmpdir:
        fix, pick = create_picked_repository(tmpdir)

        assert main(["--method", "message", "--log-level", "ERROR", tmpdir]) == 0

    assert capsys.readouterr().out.splitlines() == [f"MessageScan {fix} {pick}"]


def test_cli_merges_network(capsys):
    with tempfile.TemporaryDirectory() as tmpdir:
        first = os.path.join(tmpdir, "first")
        os.mkdir(first)
        fix, pick = create_picked_repository(first)
        second = os.path.join(tmpdir, "second")
        success, _, stderr = run_command(["git", "clone", "-q", first, second])
        assert success, stderr

        assert main(["--method", "exact", "--merge-network", "--log-level", "ERROR", first, second]) == 0

    assert capsys.readouterr().out.splitlines() == [f"ExactDiffMatch {fix} {pick}"]


def test_cli_failures():
    with tempfile.TemporaryDirectory() as tmpdir:
        create_picked_repository(tmpdir)

        assert main(["--lsh", "unknown=1", "--log-level", "CRITICAL", tmpdir]) == 1
        assert main(["--lsh", "num_hashes=101", "--log-level", "CRITICAL", tmpdir]) == 1
        assert main(["--workers", "0", "--log-level", "CRITICAL", tmpdir]) == 1
        assert main(["--log-level", "CRITICAL", os.path.join(tmpdir, "missing")]) == 1


def test_cli_skips_failed_clone(capsys):
    with tempfile.TemporaryDirectory() as tmpdir:
        fix, pick = create_picked_repository(tmpdir)
        missing = f"file://{tmpdir}/missing/repo.git"

        assert main(["--method", "message", "--log-level", "ERROR", tmpdir, missing]) == 0
        assert capsys.readouterr().out.splitlines() == [f"MessageScan {fix} {pick}"]

        assert main(["--method", "message", "--log-level", "CRITICAL", missing]) == 1


def test_open_repositories_records_failed_clone():
    reporter = SearchReporter()
    with tempfile.TemporaryDirectory() as tmpdir, contextlib.ExitStack() as stack:
        missing = f"file://{tmpdir}/missing.git"

        repositories = open_repositories([tmpdir, missing], stack, reporter)

    assert [repository.name for repository in repositories] == [tmpdir]
    (failure,) = reporter.failures
    assert failure.repository == missing
    assert failure.search_method == ACCESS_STEP
