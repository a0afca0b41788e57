"""
Core utility functions shared across exam service modules.

This module provides the random number and text helpers used by both the
plan builder and the offline item synthesizer.
"""

import re
from collections.abc import Sequence
from typing import TypeVar

import numpy as np
from numpy.random import Generator

T = TypeVar("T")

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619

_WHITESPACE_RE = re.compile(r"\s+")


def get_rng(seed: int | None = None) -> Generator:
    """
    Create a numpy random Generator with optional seed.

    Args:
        seed: Random seed for reproducibility. If None, uses entropy.

    Returns:
        A numpy random Generator instance.
    """
    return np.random.default_rng(seed)


def fnv1a_32(text: str) -> int:
    """
    32-bit FNV-1a hash of a string.

    Hashes UTF-16 code units so that seeds derived from the same text are
    stable regardless of how non-ASCII characters are encoded.

    Args:
        text: Input string.

    Returns:
        Unsigned 32-bit hash value.
    """
    h = FNV_OFFSET_BASIS
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h ^= unit
        h = (h * FNV_PRIME) & 0xFFFFFFFF
    return h


def sanitize_text(text: str | None) -> str:
    """Collapse runs of whitespace and strip the ends."""
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def index_to_letter(index: int) -> str:
    """
    Convert a 0-based index to a letter (0 -> 'A', 1 -> 'B', etc.).

    Raises:
        ValueError: If index is out of range [0, 25].
    """
    if not (0 <= index <= 25):
        raise ValueError(f"Index must be in [0, 25], got {index}")
    return chr(ord("A") + index)


def pick_one(rng: Generator, items: Sequence[T]) -> T:
    """Uniformly pick one element. Raises ValueError on an empty sequence."""
    if not items:
        raise ValueError("cannot pick from an empty sequence")
    return items[int(rng.integers(len(items)))]


def shuffled(rng: Generator, items: Sequence[T]) -> list[T]:
    """Return a shuffled copy of ``items``; the input is left untouched."""
    order = rng.permutation(len(items))
    return [items[int(i)] for i in order]


def take_distinct(rng: Generator, items: Sequence[T], n: int) -> list[T]:
    """Draw up to ``n`` elements without replacement."""
    if n <= 0:
        return []
    return shuffled(rng, items)[: min(n, len(items))]
