"""Similarity primitives for user-user and item-item comparisons.

All functions are pure and resolve degenerate input (zero norm, too little
overlap, mismatched lengths) to 0.0 instead of raising.
"""

import math
from collections.abc import Iterable, Mapping, Sequence

import numpy as np

MIN_COMMON_INTERACTIONS = 3


def cosine_similarity(a: Mapping[str, float] | Sequence[float], b: Mapping[str, float] | Sequence[float]) -> float:
    """Cosine similarity of two sparse maps or two equal-length dense vectors."""
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        return _sparse_cosine(a, b)
    if isinstance(a, Mapping) or isinstance(b, Mapping):
        return 0.0
    if len(a) != len(b) or len(a) == 0:
        return 0.0
    return _dense_cosine(np.asarray(a, dtype=float), np.asarray(b, dtype=float))


def truncated_cosine(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine over the common prefix of two vectors of possibly different length."""
    n = min(len(a), len(b))
    if n == 0:
        return 0.0
    return _dense_cosine(np.asarray(a[:n], dtype=float), np.asarray(b[:n], dtype=float))


def pearson_correlation(pairs: Iterable[tuple[float, float]]) -> float:
    """Pearson correlation over paired observations; 0.0 below MIN_COMMON_INTERACTIONS pairs."""
    pairs = list(pairs)
    n = len(pairs)
    if n < MIN_COMMON_INTERACTIONS:
        return 0.0

    sum_x = sum_y = sum_x2 = sum_y2 = sum_xy = 0.0
    for x, y in pairs:
        sum_x += x
        sum_y += y
        sum_x2 += x * x
        sum_y2 += y * y
        sum_xy += x * y

    numerator = sum_xy - (sum_x * sum_y) / n
    variance = (sum_x2 - sum_x * sum_x / n) * (sum_y2 - sum_y * sum_y / n)
    if variance <= 0:
        return 0.0
    return numerator / math.sqrt(variance)


def overlap_ratio(a: Sequence[str], b: Sequence[str]) -> tuple[float, int]:
    """Return (overlap / max(len), overlap count). Both empty -> (0.0, 0)."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 0.0, 0
    other = set(b)
    overlap = sum(1 for item in a if item in other)
    return overlap / longest, overlap


def _sparse_cosine(a: Mapping[str, float], b: Mapping[str, float]) -> float:
    dot = norm_a = norm_b = 0.0
    for key in set(a) | set(b):
        va = a.get(key, 0.0) or 0.0
        vb = b.get(key, 0.0) or 0.0
        dot += va * vb
        norm_a += va * va
        norm_b += vb * vb
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


def _dense_cosine(a: np.ndarray, b: np.ndarray) -> float:
    norm_a = float(np.linalg.norm(a))
    norm_b = float(np.linalg.norm(b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))
