"""
Exceptions raised while searching for cherry-picks.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0


class ConfigurationError(ValueError):
    """Invalid search configuration, raised before any work is started."""


class PatchUnavailableError(RuntimeError):
    """The patch of a single commit cannot be produced, the commit is skipped."""

    def __init__(self, commit_id: str, reason: str = ""):
        super().__init__(f"Failed to produce patch for commit {commit_id}" + (f": {reason}" if reason else ""))
        self.commit_id = commit_id


class RepositoryAccessError(RuntimeError):
    """The commits of a repository cannot be enumerated."""
