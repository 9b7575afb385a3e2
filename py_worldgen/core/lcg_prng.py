"""
Seeded linear congruential generator.

Every stochastic decision in a generation run draws from one instance of
this generator, in a fixed order, so the same seed always reproduces the
same world.
"""

from typing import List, MutableSequence, Sequence, TypeVar

T = TypeVar("T")

LCG_MULTIPLIER = 1664525
LCG_INCREMENT = 1013904223
LCG_MODULUS = 2 ** 32


def _uint32(n):
    """Convert to unsigned 32-bit integer."""
    return int(n) & 0xFFFFFFFF


class SeededRandom:
    """
    Linear congruential generator with 32-bit state.

    ``state = (state * 1664525 + 1013904223) mod 2^32`` and each draw is
    ``state / 2^32``. Derived helpers consume draws only through
    ``next()`` so the number and order of draws is part of the contract.
    """

    def __init__(self, seed: int):
        """Initialize with an integer seed (reduced to 32 bits)."""
        self.state = _uint32(seed)
        self.call_count = 0

    def next(self) -> float:
        """Generate next random number in [0, 1)."""
        self.call_count += 1
        self.state = (self.state * LCG_MULTIPLIER + LCG_INCREMENT) % LCG_MODULUS
        return self.state / LCG_MODULUS

    def next_int(self, max_value: int) -> int:
        """Random integer in [0, max_value)."""
        return int(self.next() * max_value)

    def next_float(self, min_value: float, max_value: float) -> float:
        """Random float in [min_value, max_value)."""
        return min_value + self.next() * (max_value - min_value)

    def choice(self, seq: Sequence[T]) -> T:
        """Choose a random element from a non-empty sequence."""
        if not seq:
            raise IndexError("Cannot choose from an empty sequence")
        return seq[self.next_int(len(seq))]

    def shuffle(self, items: MutableSequence[T]) -> MutableSequence[T]:
        """
        Fisher-Yates shuffle in place.

        Args:
            items: Sequence to shuffle

        Returns:
            The same sequence, shuffled
        """
        for i in range(len(items) - 1, 0, -1):
            j = self.next_int(i + 1)
            items[i], items[j] = items[j], items[i]
        return items

    def sample(self, items: Sequence[T], k: int) -> List[T]:
        """Return up to k items drawn without replacement."""
        pool = list(items)
        self.shuffle(pool)
        return pool[:k]
