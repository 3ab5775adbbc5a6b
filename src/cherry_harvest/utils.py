#!/usr/bin/env python3

"""
Utility functions to run commands and to distribute work over threads.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import logging
import os
import subprocess
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, Tuple, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def run_command(
    cmd: list,
    check: bool = False,
    input_data: str = None,
    cwd: str = None,
    env: dict = None,
    errors: str = "replace",
) -> Tuple[bool, str, str]:
    """Run a command and return its status, stdout, and stderr.

    Output that is not valid UTF-8 is decoded with the given error handler. The
    default "replace" is lossy, use "surrogateescape" to keep the original bytes.
    """
    log.debug("Running command %r ...", cmd)
    run_env = None
    if env:
        run_env = dict(os.environ)
        run_env.update(env)
    try:
        result = subprocess.run(
            cmd,
            check=check,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors=errors,
            input=input_data,
            cwd=cwd,
            env=run_env,
        )
        log.debug("Command %r returned %d", cmd, result.returncode)
        return result.returncode == 0, result.stdout, result.stderr
    except subprocess.CalledProcessError as e:
        log.debug("Command %r failed: %r", cmd, e)
        return False, "", str(e)
    except OSError as e:
        log.debug("Command %r could not be started: %r", cmd, e)
        return False, "", str(e)


def parallel_map(func: Callable[[T], R], items: Iterable[T], max_workers: Optional[int] = None) -> List[R]:
    """Apply func to all items on a thread pool, and return the results in input order.

    Exceptions raised by func are propagated to the caller, so func has to handle
    the failures it wants to recover from itself.
    """
    items = list(items)
    if len(items) <= 1 or max_workers == 1:
        return [func(item) for item in items]
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(func, items))
