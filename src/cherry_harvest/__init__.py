"""Cherry_harvest module."""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0


CHERRY_PICK_MARKER = "(cherry picked from commit "  # Text git cherry-pick -x adds to the message
DEFAULT_NUM_HASHES = 100  # MinHash signature length N
DEFAULT_BANDS = 20  # LSH bands B, with B * R == N
DEFAULT_ROWS = 5  # Signature values per band R
DEFAULT_SIMILARITY_THRESHOLD = 0.7  # Minimal estimated Jaccard similarity of a verified pair
DEFAULT_SEED = 1  # Seed of the MinHash permutation family
