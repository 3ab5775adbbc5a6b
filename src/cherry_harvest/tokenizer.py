"""
Module turning patch text into the tokens used for approximate matching.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import logging
import re
from dataclasses import dataclass
from typing import FrozenSet, Iterator, Tuple

from unidiff import PatchSet

log = logging.getLogger(__name__)

# Words are runs of letters, digits and underscores, everything else separates them
WORD_PATTERN = re.compile(r"\w+")

ADDED_PREFIX = "+"
REMOVED_PREFIX = "-"


@dataclass(frozen=True)
class TokenSet:
    """Multiset of tokens of one patch, sorted, as the line order of a patch does not matter."""

    tokens: Tuple[str, ...] = ()

    def __len__(self):
        return len(self.tokens)

    def __iter__(self) -> Iterator[str]:
        return iter(self.tokens)

    def distinct(self) -> FrozenSet[str]:
        """Return the set of tokens, dropping repetitions."""
        return frozenset(self.tokens)

    def jaccard(self, other: "TokenSet") -> float:
        """Return the exact Jaccard similarity of the distinct tokens of both sets."""
        left = self.distinct()
        right = other.distinct()
        union = left | right
        if not union:
            return 0.0
        return len(left & right) / len(union)


def line_tokens(prefix: str, line: str) -> Iterator[str]:
    """Split a changed line into words, each marked with the change direction."""
    for word in WORD_PATTERN.findall(line):
        yield prefix + word


def tokenize_patch(patch_text: str) -> TokenSet:
    """Return the tokens of all added and removed lines of a unified diff.

    Context lines are ignored. Patches without changed text lines, e.g. binary
    changes, result in an empty TokenSet. Malformed patches raise
    unidiff.UnidiffParseError.
    """
    if not patch_text or not patch_text.strip():
        return TokenSet()

    tokens = []
    for patched_file in PatchSet(patch_text):
        for hunk in patched_file:
            for line in hunk:
                if line.is_added:
                    tokens.extend(line_tokens(ADDED_PREFIX, line.value))
                elif line.is_removed:
                    tokens.extend(line_tokens(REMOVED_PREFIX, line.value))

    log.debug("Extracted %d tokens from patch with %d characters", len(tokens), len(patch_text))
    return TokenSet(tuple(sorted(tokens)))
