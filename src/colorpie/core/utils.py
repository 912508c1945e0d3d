"""
Numerical utilities for belief computations.

Adapted from the Active Inference helpers: pure numpy, no numba dependency.
Unlike the coaching helpers these never fall back to a uniform vector on
degenerate input; the caller gets an error instead.
"""

from __future__ import annotations

import numpy as np

from .exceptions import DegenerateDistributionError

# Sums or marginals at or below this are treated as zero.
EPSILON = 1e-12


def normalize_array(x: np.ndarray) -> np.ndarray:
    """Normalize array to sum to 1 (probability distribution)."""
    x = np.asarray(x, dtype=np.float64)
    if not np.all(np.isfinite(x)):
        raise DegenerateDistributionError("Cannot normalize non-finite values")
    if np.any(x < 0.0):
        raise DegenerateDistributionError("Cannot normalize negative values")
    total = float(np.sum(x))
    if total <= EPSILON:
        raise DegenerateDistributionError(
            f"Cannot normalize vector with sum {total:.3e}"
        )
    return x / total


def softmax(x: np.ndarray, temperature: float = 1.0) -> np.ndarray:
    """Softmax with temperature scaling. Lower temp = more deterministic.

    Callers must validate the temperature; it is assumed > 0 here.
    """
    x = np.asarray(x, dtype=np.float64)
    shifted = (x - np.max(x)) / temperature
    exp_vals = np.exp(shifted)
    return exp_vals / np.sum(exp_vals)


def entropy_bits(p: np.ndarray) -> float:
    """Shannon entropy in bits, H(p) = -sum(p * log2(p)), with 0 log 0 = 0."""
    p = np.asarray(p, dtype=np.float64)
    p_safe = p[p > 0.0]
    return float(max(0.0, -np.sum(p_safe * np.log2(p_safe))))


def normalized_confidence(p: np.ndarray) -> float:
    """
    Confidence of a distribution in [0, 1].

    u = 1 - H(p) / log2(N)

    - 0: uniform, maximum uncertainty
    - 1: all mass on one entry
    """
    n = len(p)
    if n <= 1:
        return 1.0
    confidence = 1.0 - entropy_bits(p) / np.log2(n)
    return float(max(0.0, min(confidence, 1.0)))
