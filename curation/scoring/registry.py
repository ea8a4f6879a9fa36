# curation/scoring/registry.py
"""
Dimension Registry
------------------
Fixed table of named scoring dimensions. Each dimension carries a weight and
presentational metadata; a registry is built once per curator persona and
shared read-only by every scoring call bound to it.

Invariants:
    weight > 0 for every dimension
    keys unique
    Σ weights == 100 before scoring (see normalize_weights)
"""
import math
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Tuple

from curation.core.exceptions import ConfigError

WEIGHT_TOTAL = 100.0
WEIGHT_TOLERANCE = 1e-6


@dataclass(frozen=True)
class Dimension:
    """One named scoring axis."""
    key: str
    weight: float
    display_name: str = ""
    description: str = ""


class DimensionRegistry:
    """Immutable, ordered collection of dimensions."""

    def __init__(self, dimensions: Tuple[Dimension, ...]):
        self._dimensions = dimensions
        self._by_key: Dict[str, Dimension] = {d.key: d for d in dimensions}

    def __iter__(self) -> Iterator[Dimension]:
        return iter(self._dimensions)

    def __len__(self) -> int:
        return len(self._dimensions)

    def __contains__(self, key: str) -> bool:
        return key in self._by_key

    def __getitem__(self, key: str) -> Dimension:
        return self._by_key[key]

    def __repr__(self) -> str:
        weights = ", ".join(f"{d.key}={d.weight:g}" for d in self._dimensions)
        return f"DimensionRegistry({weights})"

    @property
    def keys(self) -> List[str]:
        return [d.key for d in self._dimensions]

    @property
    def weights(self) -> Dict[str, float]:
        return {d.key: d.weight for d in self._dimensions}

    @property
    def total_weight(self) -> float:
        return math.fsum(d.weight for d in self._dimensions)

    @property
    def is_normalized(self) -> bool:
        return abs(self.total_weight - WEIGHT_TOTAL) <= WEIGHT_TOLERANCE

    def weight(self, key: str) -> float:
        return self._by_key[key].weight

    def normalize_weights(self) -> "DimensionRegistry":
        """
        Rescale every weight so the registry sums to exactly 100.

        Relative proportions are preserved. Returns a new registry; an already
        normalized registry is returned unchanged, so the call is idempotent.
        """
        if self.is_normalized:
            return self
        total = self.total_weight
        rescaled = tuple(
            Dimension(
                key=d.key,
                weight=d.weight / total * WEIGHT_TOTAL,
                display_name=d.display_name,
                description=d.description,
            )
            for d in self._dimensions
        )
        return DimensionRegistry(rescaled)

    def require_normalized(self) -> None:
        if not self.is_normalized:
            raise ConfigError(
                f"Dimension weights must sum to {WEIGHT_TOTAL:g}, got {self.total_weight:g}; "
                "call normalize_weights() before scoring"
            )


def create_registry(dimensions: Iterable[Dimension]) -> DimensionRegistry:
    """
    Validate dimension specs and build a registry.

    Raises:
        ConfigError: no dimensions, a non-positive or non-finite weight,
                     duplicate keys, or a zero weight sum.
    """
    dims = tuple(dimensions)
    if not dims:
        raise ConfigError("A registry needs at least one dimension")

    seen = set()
    for d in dims:
        if not d.key:
            raise ConfigError("Dimension key must be a non-empty string")
        if d.key in seen:
            raise ConfigError(f"Duplicate dimension key '{d.key}'")
        seen.add(d.key)
        if isinstance(d.weight, bool) or not isinstance(d.weight, (int, float)):
            raise ConfigError(f"Dimension '{d.key}' weight must be a number")
        if not math.isfinite(d.weight) or d.weight <= 0:
            raise ConfigError(f"Dimension '{d.key}' weight must be > 0, got {d.weight}")

    registry = DimensionRegistry(dims)
    if registry.total_weight == 0:
        raise ConfigError("Dimension weights sum to 0")
    return registry
