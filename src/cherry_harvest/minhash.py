"""
MinHash signatures of token sets.

A signature holds, for each of N hash functions, the minimal hash value over
all tokens of a set. The fraction of positions in which two signatures agree
is an unbiased estimate of the Jaccard similarity of the two token sets. The
hash functions are the seeded permutation family of datasketch, so signatures
are reproducible for a given seed.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import logging
from dataclasses import dataclass
from typing import Tuple

from datasketch import MinHash

from cherry_harvest import DEFAULT_NUM_HASHES, DEFAULT_SEED
from cherry_harvest.errors import ConfigurationError
from cherry_harvest.tokenizer import TokenSet

log = logging.getLogger(__name__)

# Hash scheme of the datasketch permutation family, required when reusing permutations
HASH_SCHEME = "affine32"


@dataclass(frozen=True)
class MinHashSignature:
    """Fixed length sequence of minimal hash values."""

    values: Tuple[int, ...]

    def __len__(self):
        return len(self.values)

    def band(self, index: int, rows: int) -> Tuple[int, ...]:
        """Return the index-th group of rows contiguous values."""
        return self.values[index * rows : (index + 1) * rows]

    def agreement(self, other: "MinHashSignature") -> float:
        """Return the fraction of positions with equal values, the estimated Jaccard similarity."""
        if len(self.values) != len(other.values):
            raise ValueError(f"Cannot compare signatures of length {len(self.values)} and {len(other.values)}")
        if not self.values:
            return 0.0
        equal = sum(1 for left, right in zip(self.values, other.values) if left == right)
        return equal / len(self.values)


class SignatureGenerator:
    """Create MinHash signatures with a fixed, seeded family of hash functions."""

    def __init__(self, num_hashes: int = DEFAULT_NUM_HASHES, seed: int = DEFAULT_SEED):
        if not isinstance(num_hashes, int) or num_hashes <= 0:
            raise ConfigurationError(f"Number of hash functions must be a positive integer, got {num_hashes!r}")
        if not isinstance(seed, int) or seed < 0:
            raise ConfigurationError(f"Seed must be a non-negative integer, got {seed!r}")
        self.num_hashes = num_hashes
        self.seed = seed
        # The permutations are drawn once, and shared by all signatures of this generator
        self._permutations = MinHash(num_perm=num_hashes, seed=seed).permutations

    def signature(self, token_set: TokenSet) -> MinHashSignature:
        """Return the signature of a non-empty token set."""
        tokens = token_set.distinct()
        if not tokens:
            raise ValueError("Cannot create a MinHash signature of an empty token set")

        minhash = MinHash(
            num_perm=self.num_hashes, seed=self.seed, permutations=self._permutations, scheme=HASH_SCHEME
        )
        for token in sorted(tokens):
            minhash.update(token.encode("utf-8"))
        return MinHashSignature(tuple(int(value) for value in minhash.hashvalues))
