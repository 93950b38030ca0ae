"""Deterministic random streams for puzzle generation.

All randomness in the engine flows through a 32-bit mix-and-avalanche
generator (mulberry32) so that the same seed yields the same geometry on
every platform. Components that need an independent stream derive a
sub-seed from the global seed and a stable position key such as ``H:2,3``.
"""

from typing import List, MutableSequence, Tuple, TypeVar

T = TypeVar("T")

MASK_32 = 0xFFFFFFFF

# Increment of the mulberry32 Weyl sequence
_WEYL_INCREMENT = 0x6D2B79F5

# 2**32, used to map the 32-bit output into [0, 1)
_UINT32_RANGE = 4294967296.0


def _imul(a: int, b: int) -> int:
    """Multiply two 32-bit integers, keeping the low 32 bits."""
    return (a * b) & MASK_32


def next_float(state: int) -> Tuple[float, int]:
    """Advance the generator by one step.

    Args:
        state: Current 32-bit generator state.

    Returns:
        Tuple of (float in [0, 1), new state).
    """
    state = (state + _WEYL_INCREMENT) & MASK_32
    t = state
    t = _imul(t ^ (t >> 15), t | 1)
    t ^= (t + _imul(t ^ (t >> 7), t | 61)) & MASK_32
    value = ((t ^ (t >> 14)) & MASK_32) / _UINT32_RANGE
    return value, state


def hash_string(text: str) -> int:
    """Stable non-negative 32-bit hash of a string.

    Uses the classic ``hash * 31 + char`` rolling hash truncated to a signed
    32-bit integer, then takes the absolute value.
    """
    value = 0
    for char in text:
        value = ((value << 5) - value + ord(char)) & MASK_32
    if value >= 0x80000000:
        value -= 0x100000000
    return abs(value)


def derive_seed(base_seed: int, key: str) -> int:
    """Derive an independent sub-seed for a position key.

    Args:
        base_seed: The global puzzle seed.
        key: Stable identity of the consumer, e.g. ``"V:0,1"``.

    Returns:
        A 32-bit seed that depends only on the base seed and the key.
    """
    return (base_seed + hash_string(key)) & MASK_32


class SeededRandom:
    """Stateful convenience wrapper around :func:`next_float`."""

    def __init__(self, seed: int):
        self.seed = seed & MASK_32
        self._state = self.seed
        self.draws = 0

    def random(self) -> float:
        """Return the next float in [0, 1)."""
        value, self._state = next_float(self._state)
        self.draws += 1
        return value

    def uniform(self, low: float, high: float) -> float:
        """Return a float in [low, high)."""
        return low + (high - low) * self.random()

    def chance(self, probability: float = 0.5) -> bool:
        """Return True with the given probability."""
        return self.random() > 1.0 - probability

    def shuffle(self, items: MutableSequence[T]) -> None:
        """Shuffle a sequence in place (Fisher-Yates, last index first)."""
        for i in range(len(items) - 1, 0, -1):
            j = int(self.random() * (i + 1))
            items[i], items[j] = items[j], items[i]

    def shuffled(self, items: List[T]) -> List[T]:
        """Return a shuffled copy of a list."""
        copy = list(items)
        self.shuffle(copy)
        return copy
