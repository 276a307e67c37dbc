"""Unbiased sampling helpers for winner selection."""

from __future__ import annotations

import random
import secrets
from typing import Hashable, Optional, Sequence, TypeVar

T = TypeVar("T", bound=Hashable)


def default_rng() -> random.Random:
    """Return the OS-entropy generator used for real draws."""

    return secrets.SystemRandom()


def draw_without_replacement(
    pool: Sequence[T],
    k: int,
    rng: Optional[random.Random] = None,
) -> list[T]:
    """Draw ``k`` distinct members of ``pool`` uniformly at random.

    Every ``k``-subset is equally likely and the result is in draw order.
    The pool is sorted first, so a seeded ``rng`` reproduces the same draw
    whatever order the database returned the rows in.

    Parameters
    ----------
    pool : Sequence[T]
        Distinct, sortable candidates (slot numbers or participant ids).
    k : int
        How many members to draw.
    rng : Optional[random.Random], default: None
        Source of randomness. Defaults to :func:`default_rng`.

    Raises
    ------
    ValueError
        If ``k`` is negative, larger than the pool, or the pool contains
        duplicates.
    """

    if k < 0:
        raise ValueError("k must be non-negative")
    ordered = sorted(pool)
    if len(set(ordered)) != len(ordered):
        raise ValueError("pool members must be distinct")
    if k > len(ordered):
        raise ValueError(f"Cannot draw {k} members from a pool of {len(ordered)}")
    return (rng or default_rng()).sample(ordered, k)


__all__ = ["default_rng", "draw_without_replacement"]
