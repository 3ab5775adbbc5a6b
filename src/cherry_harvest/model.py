"""
Value types for commits and the cherry-picks found between them.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import functools
import hashlib
from dataclasses import dataclass, field
from typing import Optional, Tuple

# Hex digest of the normalized patch text
PatchFingerprint = str


@functools.total_ordering
@dataclass(frozen=True)
class Commit:
    """A commit as enumerated from a repository.

    Commits are identified by their id only. They are ordered by committer
    timestamp, and by id for commits that share a timestamp.
    """

    id: str
    parent_ids: Tuple[str, ...] = field(default=(), compare=False)
    timestamp: int = field(default=0, compare=False)  # committer time, seconds since epoch
    message: str = field(default="", compare=False)
    author: str = field(default="", compare=False)
    committer: str = field(default="", compare=False)
    patch: Optional[str] = field(default=None, compare=False, repr=False)  # diff against the first parent

    def __post_init__(self):
        object.__setattr__(self, "parent_ids", tuple(self.parent_ids))

    def __lt__(self, other):
        if not isinstance(other, Commit):
            return NotImplemented
        return self.sort_key < other.sort_key

    @property
    def sort_key(self) -> Tuple[int, str]:
        return self.timestamp, self.id

    def has_single_parent(self) -> bool:
        """Return whether the commit has a single well-defined patch."""
        return len(self.parent_ids) == 1


@dataclass(frozen=True)
class CherrySource:
    """The earlier commit of a cherry-pick."""

    commit: Commit

    @property
    def id(self) -> str:
        return self.commit.id


@dataclass(frozen=True)
class CherryTarget:
    """The later commit of a cherry-pick, which replays the change of the source."""

    commit: Commit

    @property
    def id(self) -> str:
        return self.commit.id


@dataclass(frozen=True)
class CherryPick:
    """An ordered (source, target) pair, equal to every other pick of the same two commit ids."""

    source: CherrySource
    target: CherryTarget

    @classmethod
    def construct(cls, commit_a: Commit, commit_b: Commit) -> "CherryPick":
        """Create a pick of two equivalent commits, the older commit becomes the source.

        Commits with the same timestamp are ordered by their id.
        """
        if commit_a.id == commit_b.id:
            raise ValueError(f"Cannot pair commit {commit_a.id} with itself")
        older, younger = (commit_a, commit_b) if commit_a.sort_key < commit_b.sort_key else (commit_b, commit_a)
        return cls(CherrySource(older), CherryTarget(younger))

    @classmethod
    def new(cls, source: Commit, target: Commit) -> "CherryPick":
        """Create a pick whose source and target roles are already known."""
        if source.id == target.id:
            raise ValueError(f"Cannot pair commit {source.id} with itself")
        return cls(CherrySource(source), CherryTarget(target))

    @property
    def ids(self) -> Tuple[str, str]:
        return self.source.id, self.target.id

    def __str__(self):
        return f"CherryPick(source={self.source.id}, target={self.target.id})"


@dataclass(frozen=True)
class SearchResult:
    """A cherry-pick together with the name of the search method that found it."""

    search_method: str
    cherry_pick: CherryPick

    @property
    def sort_key(self) -> Tuple:
        source = self.cherry_pick.source.commit
        target = self.cherry_pick.target.commit
        return self.search_method, source.timestamp, source.id, target.timestamp, target.id


def normalize_patch(patch_text: str) -> str:
    """Drop the parts of a patch that change when the same hunks are replayed elsewhere.

    Blob index lines are removed, and hunk headers are reduced to '@@', as
    their line numbers and section headings depend on the surrounding file.
    File names and all hunk lines are kept.
    """
    normalized_lines = []
    for line in patch_text.splitlines():
        if line.startswith("index "):
            continue
        if line.startswith("@@"):
            normalized_lines.append("@@")
            continue
        normalized_lines.append(line)
    return "\n".join(normalized_lines)


def patch_fingerprint(patch_text: str) -> PatchFingerprint:
    """Return the strong hash of the normalized patch text."""
    return hashlib.sha256(normalize_patch(patch_text).encode("utf-8", errors="surrogateescape")).hexdigest()
