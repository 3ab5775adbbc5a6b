"""
Locality sensitive hashing over MinHash signatures.

Each signature of N = B * R values is split into B bands of R values. Two
signatures become a candidate pair if they agree on all values of at least
one band. For two token sets with Jaccard similarity s, the probability to
become candidates is 1 - (1 - s^R)^B: fewer rows or more bands find more of
the similar pairs, at the price of more candidates to verify.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import logging
from collections import defaultdict
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from cherry_harvest import DEFAULT_BANDS, DEFAULT_NUM_HASHES, DEFAULT_ROWS, DEFAULT_SEED, DEFAULT_SIMILARITY_THRESHOLD
from cherry_harvest.errors import ConfigurationError
from cherry_harvest.minhash import MinHashSignature
from cherry_harvest.utils import parallel_map

log = logging.getLogger(__name__)

Band = Tuple[int, ...]
CandidatePair = Tuple[str, str]


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class LshConfig:
    """Parameters of the approximate search, they control its precision and recall."""

    num_hashes: int = DEFAULT_NUM_HASHES
    bands: int = DEFAULT_BANDS
    rows: int = DEFAULT_ROWS
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    seed: int = DEFAULT_SEED
    max_workers: Optional[int] = None

    def __post_init__(self):
        for name in ("num_hashes", "bands", "rows"):
            value = getattr(self, name)
            if not _is_int(value) or value <= 0:
                raise ConfigurationError(f"LSH parameter {name} must be a positive integer, got {value!r}")
        if self.bands * self.rows != self.num_hashes:
            raise ConfigurationError(
                f"A signature of {self.num_hashes} values cannot be split into {self.bands} bands of {self.rows} rows"
            )
        if isinstance(self.threshold, bool) or not isinstance(self.threshold, (int, float)):
            raise ConfigurationError(f"LSH parameter threshold must be a number, got {self.threshold!r}")
        if not 0.0 < self.threshold <= 1.0:
            raise ConfigurationError(f"LSH parameter threshold must be in (0, 1], got {self.threshold}")
        if not _is_int(self.seed) or self.seed < 0:
            raise ConfigurationError(f"LSH parameter seed must be a non-negative integer, got {self.seed!r}")
        if self.max_workers is not None and (not _is_int(self.max_workers) or self.max_workers <= 0):
            raise ConfigurationError(f"LSH parameter max_workers must be a positive integer, got {self.max_workers!r}")

    def candidate_probability(self, similarity: float) -> float:
        """Return the probability that two sets with the given similarity become candidates."""
        return 1.0 - (1.0 - similarity**self.rows) ** self.bands

    @classmethod
    def from_parameters(cls, parameters: Dict[str, str]) -> "LshConfig":
        """Create a configuration from string parameters, e.g. parsed from the command line.

        Of num_hashes, bands and rows, missing values are derived from the given
        ones, keeping the default number of rows if possible.
        """

        supported_parameter = {
            "num_hashes": "int",
            "bands": "int",
            "rows": "int",
            "threshold": "float",
            "seed": "int",
            "max_workers": "int",
        }

        converted = {}
        for parameter, value in parameters.items():
            if parameter not in supported_parameter:
                raise ConfigurationError(f"LSH parameter {parameter} is not supported")
            expected_type = supported_parameter[parameter]
            try:
                if expected_type == "int":
                    converted[parameter] = int(value)
                elif expected_type == "float":
                    converted[parameter] = float(value)
                else:
                    raise NotImplementedError(f"Expected type '{expected_type}' is not handled")
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"LSH parameter {parameter} expects {expected_type}, got {value!r}") from e

        num_hashes = converted.get("num_hashes")
        bands = converted.get("bands")
        rows = converted.get("rows")
        if num_hashes is None:
            bands = DEFAULT_BANDS if bands is None else bands
            rows = DEFAULT_ROWS if rows is None else rows
            num_hashes = bands * rows
        elif bands is None:
            rows = DEFAULT_ROWS if rows is None else rows
            bands = num_hashes // rows if rows > 0 else 0
        elif rows is None:
            rows = num_hashes // bands if bands > 0 else 0
        converted.update({"num_hashes": num_hashes, "bands": bands, "rows": rows})

        log.debug("Created LSH configuration from parameters %r", converted)
        return cls(**converted)


def split_signature(signature: MinHashSignature, bands: int) -> List[Band]:
    """Split a signature into the given number of bands of equal size."""
    if bands <= 0 or len(signature) % bands != 0:
        raise ValueError(f"Cannot divide a signature of length {len(signature)} into {bands} bands")
    rows = len(signature) // bands
    return [signature.band(index, rows) for index in range(bands)]


class LshIndex:
    """Bucket tables of all bands of a set of signatures.

    The index does not change after build(), so it can be read from several
    threads without locking.
    """

    def __init__(self, band_buckets: Sequence[Mapping[Band, Tuple[str, ...]]], rows: int, size: int):
        self._band_buckets = tuple(MappingProxyType(dict(buckets)) for buckets in band_buckets)
        self._rows = rows
        self._size = size

    def __len__(self):
        return self._size

    @property
    def bands(self) -> int:
        return len(self._band_buckets)

    @property
    def rows(self) -> int:
        return self._rows

    def buckets(self, band: int) -> Mapping[Band, Tuple[str, ...]]:
        """Return the read-only bucket table of a band."""
        return self._band_buckets[band]

    @classmethod
    def build(
        cls, signatures: Mapping[str, MinHashSignature], bands: int, rows: int, max_workers: Optional[int] = None
    ) -> "LshIndex":
        """Group all signatures by their band values, one bucket table per band."""

        if not _is_int(bands) or not _is_int(rows) or bands <= 0 or rows <= 0:
            raise ConfigurationError(f"Bands and rows must be positive integers, got {bands!r} and {rows!r}")
        for commit_id, signature in signatures.items():
            if len(signature) != bands * rows:
                raise ValueError(
                    f"Signature of {commit_id} has {len(signature)} values, expected {bands} bands of {rows} rows"
                )

        ordered_ids = sorted(signatures)
        banded = {commit_id: split_signature(signatures[commit_id], bands) for commit_id in ordered_ids}

        def group_band(band: int) -> Dict[Band, Tuple[str, ...]]:
            buckets = defaultdict(list)
            for commit_id in ordered_ids:
                buckets[banded[commit_id][band]].append(commit_id)
            return {key: tuple(members) for key, members in buckets.items()}

        band_buckets = parallel_map(group_band, range(bands), max_workers=max_workers)
        log.debug("Built %d band tables for %d signatures", len(band_buckets), len(ordered_ids))
        return cls(band_buckets, rows=rows, size=len(ordered_ids))

    def candidate_pairs(self) -> List[CandidatePair]:
        """Return each pair of ids sharing a bucket in at least one band once, sorted."""
        pairs = set()
        for buckets in self._band_buckets:
            for members in buckets.values():
                if len(members) < 2:
                    continue
                for index, left in enumerate(members):
                    for right in members[index + 1 :]:
                        pairs.add((left, right))
        log.debug("Collected %d candidate pairs from %d bands", len(pairs), self.bands)
        return sorted(pairs)
