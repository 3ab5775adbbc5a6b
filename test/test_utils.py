"""Tests for utility functions."""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import threading

import pytest

from cherry_harvest.utils import parallel_map, run_command


def test_run_command():
    success, stdout, _ = run_command(["git", "--version"])
    assert success
    assert stdout.startswith("git version")

    success, _, _ = run_command(["git", "no-such-subcommand"])
    assert not success


def test_run_command_missing_binary():
    success, stdout, stderr = run_command(["/nonexistent/binary"])

    assert not success
    assert stdout == ""
    assert stderr


def test_run_command_environment():
    env = {"GIT_COMMITTER_NAME": "Env User", "GIT_COMMITTER_EMAIL": "env@example.com"}
    success, stdout, _ = run_command(["git", "var", "GIT_COMMITTER_IDENT"], env=env)

    assert success
    assert stdout.startswith("Env User <env@example.com>")


def test_parallel_map_keeps_order():
    assert parallel_map(lambda value: value * 2, range(100), max_workers=8) == [value * 2 for value in range(100)]
    assert parallel_map(str, [], max_workers=4) == []
    assert parallel_map(str, [1], max_workers=4) == ["1"]


def test_parallel_map_sequential():
    threads = set()

    def record(value):
        threads.add(threading.get_ident())
        return value

    assert parallel_map(record, range(10), max_workers=1) == list(range(10))
    assert threads == {threading.get_ident()}


def test_parallel_map_propagates_errors():
    def fail_on_three(value):
        if value == 3:
            raise RuntimeError("three")
        return value

    with pytest.raises(RuntimeError):
        parallel_map(fail_on_three, range(5), max_workers=2)


def test_run_command_keeps_undecodable_bytes():
    success, stdout, _ = run_command(["printf", "caf\\351"], errors="surrogateescape")
    assert success
    assert stdout == "caf\udce9"
    assert stdout.encode("utf-8", errors="surrogateescape") == b"caf\xe9"

    success, stdout, _ = run_command(["printf", "caf\\351"])
    assert success
    assert stdout == "caf\ufffd"
