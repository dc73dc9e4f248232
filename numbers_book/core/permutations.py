"""Unique digit arrangements of a 3-digit number.

A permutation bet stakes the same amount on every *distinct* arrangement of
the digits.  Repeated digits collapse arrangements, so callers must never
assume six: ``123`` has 6, ``112`` has 3 and ``111`` has 1.
"""

from __future__ import annotations

from itertools import permutations


def generate_permutations(digits: str) -> set[str]:
    """Return the set of unique arrangements of ``digits``.

    Input that is not exactly three characters long is returned unchanged as
    a one-element set.
    """
    if len(digits) != 3:
        return {digits}
    return {"".join(p) for p in permutations(digits)}


def other_permutations(digits: str) -> set[str]:
    """Every unique arrangement of ``digits`` except ``digits`` itself."""
    return generate_permutations(digits) - {digits}
