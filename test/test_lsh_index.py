"""Tests for the LSH configuration and band index."""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import random

import pytest

from cherry_harvest.errors import ConfigurationError
from cherry_harvest.lsh_index import LshConfig, LshIndex, split_signature
from cherry_harvest.minhash import MinHashSignature, SignatureGenerator
from cherry_harvest.tokenizer import TokenSet


def test_default_config():
    config = LshConfig()

    assert (config.num_hashes, config.bands, config.rows) == (100, 20, 5)
    assert config.threshold == 0.7
    assert config.seed == 1


@pytest.mark.parametrize(
    "parameters",
    [
        {"num_hashes": 100, "bands": 30, "rows": 5},
        {"num_hashes": 0, "bands": 0, "rows": 5},
        {"threshold": 0.0},
        {"threshold": 1.5},
        {"threshold": "high"},
        {"seed": -1},
        {"max_workers": 0},
        {"bands": True, "rows": 100, "num_hashes": 100},
    ],
)
def test_invalid_config(parameters):
    with pytest.raises(ConfigurationError):
        LshConfig(**parameters)


def test_config_from_parameters():
    config = LshConfig.from_parameters({"bands": "10", "threshold": "0.8", "seed": "5"})

    assert (config.num_hashes, config.bands, config.rows) == (50, 10, 5)
    assert config.threshold == 0.8
    assert config.seed == 5

    config = LshConfig.from_parameters({"num_hashes": "120", "rows": "4"})
    assert (config.num_hashes, config.bands, config.rows) == (120, 30, 4)

    config = LshConfig.from_parameters({"num_hashes": "60", "bands": "12"})
    assert (config.num_hashes, config.bands, config.rows) == (60, 12, 5)

    assert LshConfig.from_parameters({}) == LshConfig()


def test_config_from_parameters_failures():
    with pytest.raises(ConfigurationError):
        LshConfig.from_parameters({"unknown_parameter": "1"})
    with pytest.raises(ConfigurationError):
        LshConfig.from_parameters({"threshold": "zero kelvin"})
    with pytest.raises(ConfigurationError):
        LshConfig.from_parameters({"num_hashes": "101"})


def test_candidate_probability():
    config = LshConfig()

    assert config.candidate_probability(1.0) == 1.0
    assert config.candidate_probability(0.0) == 0.0
    assert config.candidate_probability(0.8) > 0.99
    assert config.candidate_probability(0.2) < 0.01


def test_split_signature():
    signature = MinHashSignature(tuple(range(12)))

    assert split_signature(signature, 3) == [(0, 1, 2, 3), (4, 5, 6, 7), (8, 9, 10, 11)]
    with pytest.raises(ValueError):
        split_signature(signature, 5)


def test_index_buckets_and_candidates():
    signatures = {
        "c": MinHashSignature((1, 2, 3, 4)),
        "a": MinHashSignature((1, 2, 9, 9)),
        "b": MinHashSignature((7, 7, 3, 4)),
        "d": MinHashSignature((5, 5, 6, 6)),
    }
    index = LshIndex.build(signatures, bands=2, rows=2)

    assert len(index) == 4
    assert index.bands == 2
    assert index.buckets(0)[(1, 2)] == ("a", "c")
    assert index.buckets(1)[(3, 4)] == ("b", "c")
    assert index.candidate_pairs() == [("a", "c"), ("b", "c")]


def test_index_is_read_only():
    index = LshIndex.build({"a": MinHashSignature((1, 2))}, bands=1, rows=2)

    with pytest.raises(TypeError):
        index.buckets(0)[(3, 4)] = ("b",)


def test_index_rejects_wrong_signature_length():
    with pytest.raises(ValueError):
        LshIndex.build({"a": MinHashSignature((1, 2, 3))}, bands=2, rows=2)
    with pytest.raises(ConfigurationError):
        LshIndex.build({}, bands=0, rows=2)


def test_candidate_pairs_reported_once():
    same = MinHashSignature((1, 1, 1, 1))
    index = LshIndex.build({"x": same, "y": same}, bands=2, rows=2)

    assert index.candidate_pairs() == [("x", "y")]


def test_parallel_build_matches_sequential():
    generator = SignatureGenerator(num_hashes=20, seed=1)
    signatures = {
        f"commit{i}": generator.signature(TokenSet(tuple(f"+token{(i * 7 + j) % 40}" for j in range(10))))
        for i in range(30)
    }
    sequential = LshIndex.build(signatures, bands=10, rows=2, max_workers=1)
    parallel = LshIndex.build(signatures, bands=10, rows=2, max_workers=4)

    assert sequential.candidate_pairs() == parallel.candidate_pairs()


def test_candidate_recall_on_similar_sets():
    """Pairs above the threshold become candidates at least as often as the band setup predicts."""
    config = LshConfig(threshold=0.8)
    generator = SignatureGenerator(num_hashes=config.num_hashes, seed=config.seed)
    rng = random.Random(42)

    signatures = {}
    similar_pairs = []
    for pair in range(50):
        # 90 shared tokens, 5 private ones per side: Jaccard similarity 0.9
        shared = [f"+p{pair}s{i}" for i in range(90)]
        left = TokenSet(tuple(shared + [f"-p{pair}l{i}" for i in range(5)]))
        right = TokenSet(tuple(shared + [f"-p{pair}r{i}" for i in range(5)]))
        assert left.jaccard(right) == pytest.approx(90 / 100)
        signatures[f"left{pair}"] = generator.signature(left)
        signatures[f"right{pair}"] = generator.signature(right)
        similar_pairs.append((f"left{pair}", f"right{pair}"))

    # unrelated noise commits
    for noise in range(50):
        tokens = tuple(f"+n{rng.randrange(100000)}" for _ in range(40))
        signatures[f"noise{noise}"] = generator.signature(TokenSet(tokens))

    index = LshIndex.build(signatures, bands=config.bands, rows=config.rows)
    candidates = set(index.candidate_pairs())

    found = sum(1 for pair in similar_pairs if pair in candidates)
    expected = config.candidate_probability(0.9)
    assert expected > 0.99
    # allow a small margin below the expected recall
    assert found / len(similar_pairs) >= expected - 0.05
    # candidates are far fewer than all pairs
    assert len(candidates) < len(signatures) * (len(signatures) - 1) // 2 // 10
