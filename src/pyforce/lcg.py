"""
Deterministic random source for layout initialisation and jiggling.

Coincident nodes have no defined direction between them, so forces nudge
them apart by a tiny random offset. Using a seeded linear congruential
generator keeps layouts reproducible between runs.
"""

from __future__ import annotations

from typing import Callable


class PseudoRandom:
    """Linear congruential pseudo random number generator."""

    def __init__(self, seed: int = 1):
        self.seed = seed
        self.a = 1664525
        self.c = 1013904223
        self.m = 4294967296

    def get_next(self) -> float:
        """Get random real in [0, 1)."""
        self.seed = (self.a * self.seed + self.c) % self.m
        return self.seed / self.m

    def __call__(self) -> float:
        return self.get_next()


RandomSource = Callable[[], float]


def jiggle(random: RandomSource) -> float:
    """
    Return a tiny non-zero offset.

    Args:
        random: Callable returning reals in [0, 1)

    Returns:
        Offset in (-5e-7, 5e-7), never exactly zero
    """
    value = (random() - 0.5) * 1e-6
    return value if value != 0.0 else 1e-7
