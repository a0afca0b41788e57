"""
Core shared types and utilities for the exam service.

This module provides the foundational components used across the planning,
generation, normalization and scoring layers.
"""

from exam_service.core.utils import (
    fnv1a_32,
    get_rng,
    pick_one,
    sanitize_text,
    shuffled,
    take_distinct,
)

__all__ = [
    "fnv1a_32",
    "get_rng",
    "pick_one",
    "sanitize_text",
    "shuffled",
    "take_distinct",
]
