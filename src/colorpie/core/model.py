"""
Archetype state space and the Distribution belief type.

The state space is a single closed factor of five archetypes. A belief over
it is an immutable Distribution snapshot: every update produces a new one,
the session holds whichever is current.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Iterator, Mapping, Tuple, Union

import numpy as np

from .utils import entropy_bits, normalize_array


# =============================================================================
# STATE SPACE DEFINITIONS
# =============================================================================

class Archetype(str, Enum):
    """The five archetypes, in canonical vector order."""
    WHITE = "white"
    BLUE = "blue"
    BLACK = "black"
    RED = "red"
    GREEN = "green"

    @classmethod
    def parse(cls, label: Union[str, "Archetype"]) -> "Archetype":
        """Resolve an Archetype from a member or a case-insensitive label."""
        if isinstance(label, Archetype):
            return label
        key = str(label).strip().lower()
        for member in cls:
            if member.value == key:
                return member
        raise ValueError(f"Unknown archetype: {label!r}")


ARCHETYPES: Tuple[Archetype, ...] = tuple(Archetype)
N_ARCHETYPES = len(ARCHETYPES)
ARCHETYPE_INDEX: Dict[Archetype, int] = {a: i for i, a in enumerate(ARCHETYPES)}

# 7-point Likert scale
SCORES: Tuple[int, ...] = (1, 2, 3, 4, 5, 6, 7)
N_SCORES = len(SCORES)
MIN_SCORE = SCORES[0]
MAX_SCORE = SCORES[-1]

# Tolerance for the sum-to-one invariant
SUM_TOLERANCE = 1e-9


# =============================================================================
# DISTRIBUTION
# =============================================================================

class Distribution:
    """
    Immutable probability vector over archetypes.

    Backed by a read-only float64 array in canonical archetype order.
    Invariant: all values >= 0 and they sum to 1 within SUM_TOLERANCE.
    """

    __slots__ = ("_p",)

    def __init__(self, probabilities: np.ndarray):
        p = np.array(probabilities, dtype=np.float64)
        if p.shape != (N_ARCHETYPES,):
            raise ValueError(
                f"Distribution needs {N_ARCHETYPES} values, got shape {p.shape}"
            )
        if not np.all(np.isfinite(p)) or np.any(p < 0.0):
            raise ValueError(f"Distribution values must be finite and >= 0: {p}")
        if abs(float(p.sum()) - 1.0) > SUM_TOLERANCE:
            raise ValueError(f"Distribution must sum to 1, got {p.sum():.12f}")
        p.setflags(write=False)
        self._p = p

    @classmethod
    def from_mapping(cls, values: Mapping[Union[str, Archetype], float]) -> "Distribution":
        """Build from an archetype -> probability mapping (must already sum to 1)."""
        return cls(_mapping_to_array(values))

    def __getitem__(self, archetype: Union[str, Archetype]) -> float:
        return float(self._p[ARCHETYPE_INDEX[Archetype.parse(archetype)]])

    def __iter__(self) -> Iterator[Archetype]:
        return iter(ARCHETYPES)

    def __len__(self) -> int:
        return N_ARCHETYPES

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Distribution):
            return NotImplemented
        return bool(np.array_equal(self._p, other._p))

    def __hash__(self) -> int:
        return hash(self._p.tobytes())

    def __repr__(self) -> str:
        inner = ", ".join(f"{a.value}={p:.4f}" for a, p in self.items())
        return f"Distribution({inner})"

    def items(self) -> Iterator[Tuple[Archetype, float]]:
        for archetype, p in zip(ARCHETYPES, self._p):
            yield archetype, float(p)

    def as_array(self) -> np.ndarray:
        """Writable copy of the probability vector."""
        return self._p.copy()

    def as_dict(self) -> Dict[str, float]:
        """Plain dict keyed by archetype label (JSON friendly)."""
        return {archetype.value: p for archetype, p in self.items()}

    def isclose(self, other: "Distribution", atol: float = SUM_TOLERANCE) -> bool:
        return bool(np.allclose(self._p, other._p, rtol=0.0, atol=atol))

    def top(self) -> Archetype:
        """Most probable archetype (ties resolved by canonical order)."""
        return ARCHETYPES[int(np.argmax(self._p))]

    def entropy(self) -> float:
        """Shannon entropy in bits."""
        return entropy_bits(self._p)


def _mapping_to_array(values: Mapping[Union[str, Archetype], float]) -> np.ndarray:
    out = np.zeros(N_ARCHETYPES, dtype=np.float64)
    seen = set()
    for key, value in values.items():
        archetype = Archetype.parse(key)
        seen.add(archetype)
        out[ARCHETYPE_INDEX[archetype]] = float(value)
    missing = [a.value for a in ARCHETYPES if a not in seen]
    if missing:
        raise ValueError(f"Missing archetypes: {missing}")
    return out


# =============================================================================
# DISTRIBUTION OPERATIONS
# =============================================================================

def uniform() -> Distribution:
    """Distribution with every archetype at 1/5."""
    return Distribution(np.full(N_ARCHETYPES, 1.0 / N_ARCHETYPES))


def normalize(
    raw: Union[np.ndarray, Mapping[Union[str, Archetype], float]],
) -> Distribution:
    """
    Scale non-negative weights so they sum to 1.

    Raises:
        DegenerateDistributionError: if the weights sum to (near) zero.
    """
    if isinstance(raw, Mapping):
        raw = _mapping_to_array(raw)
    return Distribution(normalize_array(raw))


def blend(a: Distribution, b: Distribution, weight: float) -> Distribution:
    """
    weight * a + (1 - weight) * b, renormalized.

    blend(a, b, 1) == a and blend(a, b, 0) == b.
    """
    if not 0.0 <= weight <= 1.0:
        raise ValueError(f"Blend weight must be in [0, 1], got {weight}")
    if weight == 1.0:
        return a
    if weight == 0.0:
        return b
    mixed = weight * a.as_array() + (1.0 - weight) * b.as_array()
    return normalize(mixed)


def shrink_toward_uniform(d: Distribution, alpha: float) -> Distribution:
    """
    Pull a distribution partway back toward uniform.

    p'(c) = alpha / 5 + (1 - alpha) * p(c)
    """
    if not 0.0 <= alpha <= 1.0:
        raise ValueError(f"Shrinkage alpha must be in [0, 1], got {alpha}")
    if alpha == 0.0:
        return d
    if alpha == 1.0:
        return uniform()
    shrunk = alpha / N_ARCHETYPES + (1.0 - alpha) * d.as_array()
    # Affine mix of two distributions; only rounding drift remains
    return Distribution(shrunk / shrunk.sum())
