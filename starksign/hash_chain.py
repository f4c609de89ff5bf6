"""
Order-sensitive digest of a message vector.

The vector is folded from the right with the Pedersen hash::

    fold([a, b, c]) == H(a, H(b, H(c, 0)))

so the first element is the outermost input and the last one is folded in
first.  Folding left-to-right yields different digests that the receiving
system will reject.
"""

from __future__ import annotations

from collections.abc import Sequence

from starksign.crypto_utils import pedersen_hash
from starksign.field import FieldElement, FieldLike, to_field

EMPTY_SEED: FieldElement = 0


def fold(elements: Sequence[FieldLike]) -> FieldElement:
    """Right fold of ``elements`` into a single digest; ``fold([]) == 0``."""
    acc = EMPTY_SEED
    for element in reversed(elements):
        acc = pedersen_hash(to_field(element), acc)
    return acc
