"""
Approximate search for cherry-picks whose patches are similar, but not identical.

The pipeline tokenizes the patch of each eligible commit, computes its
MinHash signature, and groups the signatures in an LSH index. Candidate
pairs of the index are verified against the similarity threshold, verified
pairs are joined into clusters, and each cluster is reported with its oldest
commit as the source of all other commits.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import logging
import time
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from unidiff import UnidiffParseError

from cherry_harvest.lsh_index import CandidatePair, LshConfig, LshIndex
from cherry_harvest.minhash import MinHashSignature, SignatureGenerator
from cherry_harvest.model import CherryPick, Commit
from cherry_harvest.reporting import SearchReporter
from cherry_harvest.repository import Repository
from cherry_harvest.search_methods import SearchMethod, eligible_commits, oldest_with_rest
from cherry_harvest.tokenizer import TokenSet, tokenize_patch
from cherry_harvest.utils import parallel_map

log = logging.getLogger(__name__)

SKIP_UNPARSABLE_PATCH = "unparsable-patch"
SKIP_NO_CHANGED_TOKENS = "no-changed-tokens"

# Number of candidate pairs one verification task handles
VERIFICATION_BATCH_SIZE = 512


def verify_candidate(
    pair: CandidatePair, signatures: Mapping[str, MinHashSignature], threshold: float
) -> Optional[float]:
    """Return the estimated similarity of a candidate pair, or None if it is below the threshold."""
    left, right = pair
    similarity = signatures[left].agreement(signatures[right])
    if similarity >= threshold:
        return similarity
    return None


def verify_candidates(
    candidates: Sequence[CandidatePair],
    signatures: Mapping[str, MinHashSignature],
    threshold: float,
    max_workers: Optional[int] = None,
) -> List[CandidatePair]:
    """Return the candidate pairs whose estimated similarity reaches the threshold, in input order."""

    def verify_batch(batch: Sequence[CandidatePair]) -> List[CandidatePair]:
        return [pair for pair in batch if verify_candidate(pair, signatures, threshold) is not None]

    batches = [candidates[i : i + VERIFICATION_BATCH_SIZE] for i in range(0, len(candidates), VERIFICATION_BATCH_SIZE)]
    verified = []
    for batch_result in parallel_map(verify_batch, batches, max_workers=max_workers):
        verified.extend(batch_result)
    return verified


def connected_components(pairs: Iterable[CandidatePair]) -> List[List[str]]:
    """Join pairs sharing an id into clusters, return each cluster sorted, and the clusters sorted."""
    parent: Dict[str, str] = {}

    def find(node: str) -> str:
        root = node
        while parent[root] != root:
            root = parent[root]
        while parent[node] != root:
            parent[node], node = root, parent[node]
        return root

    for left, right in pairs:
        parent.setdefault(left, left)
        parent.setdefault(right, right)
        left_root, right_root = find(left), find(right)
        if left_root != right_root:
            # keep the smaller id as root, the result does not depend on pair order
            if right_root < left_root:
                left_root, right_root = right_root, left_root
            parent[right_root] = left_root

    clusters: Dict[str, List[str]] = {}
    for node in parent:
        clusters.setdefault(find(node), []).append(node)
    return sorted(sorted(members) for members in clusters.values())


class ApproximateDiffMatch(SearchMethod):
    """Find commits with similar patches via MinHash signatures and locality sensitive hashing."""

    name = "ApproximateDiffMatch"

    def __init__(self, config: Optional[LshConfig] = None):
        self.config = config if config is not None else LshConfig()
        self.generator = SignatureGenerator(num_hashes=self.config.num_hashes, seed=self.config.seed)

    def __repr__(self):
        return f"{type(self).__name__}(config={self.config!r})"

    def token_sets(
        self, repository: Repository, eligible: Sequence[Tuple[Commit, str]], reporter: SearchReporter
    ) -> Dict[str, TokenSet]:
        """Return the non-empty token sets of the eligible commits, keyed by commit id."""

        def tokenize(entry: Tuple[Commit, str]) -> Optional[TokenSet]:
            commit, patch = entry
            try:
                token_set = tokenize_patch(patch)
            except UnidiffParseError as e:
                log.debug("Cannot parse patch of commit %s: %s", commit.id, e)
                reporter.skipped(repository.name, self.name, commit.id, SKIP_UNPARSABLE_PATCH)
                return None
            if not token_set.distinct():
                reporter.skipped(repository.name, self.name, commit.id, SKIP_NO_CHANGED_TOKENS)
                return None
            return token_set

        token_sets = parallel_map(tokenize, eligible, max_workers=self.config.max_workers)
        return {commit.id: token_set for (commit, _), token_set in zip(eligible, token_sets) if token_set is not None}

    def signatures(self, token_sets: Mapping[str, TokenSet]) -> Dict[str, MinHashSignature]:
        commit_ids = sorted(token_sets)
        signatures = parallel_map(
            lambda commit_id: self.generator.signature(token_sets[commit_id]),
            commit_ids,
            max_workers=self.config.max_workers,
        )
        return dict(zip(commit_ids, signatures))

    def find(self, repository: Repository, reporter: Optional[SearchReporter] = None) -> Set[CherryPick]:
        reporter = reporter if reporter is not None else SearchReporter()
        start = time.time()

        eligible = eligible_commits(repository, self.name, reporter, max_workers=self.config.max_workers)
        commits = {commit.id: commit for commit, _ in eligible}
        token_sets = self.token_sets(repository, eligible, reporter)
        signatures = self.signatures(token_sets)

        index = LshIndex.build(signatures, self.config.bands, self.config.rows, max_workers=self.config.max_workers)
        candidates = index.candidate_pairs()
        verified = verify_candidates(candidates, signatures, self.config.threshold, self.config.max_workers)
        clusters = connected_components(verified)

        picks = set()
        for cluster in clusters:
            picks |= oldest_with_rest(commits[commit_id] for commit_id in cluster)

        log.debug(
            "%s on %s: %d signatures, %d candidates, %d verified pairs, %d clusters, %d picks in %.3f seconds",
            self.name,
            repository.name,
            len(signatures),
            len(candidates),
            len(verified),
            len(clusters),
            len(picks),
            time.time() - start,
        )
        return picks
