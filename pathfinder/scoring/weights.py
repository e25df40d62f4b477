"""Versioned weight table for relevancy scoring."""

from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from ..discovery.types import PathType
from ..errors import ValidationError
from ..graph.schema import EdgeType


def _default_bases() -> dict[str, float]:
    return {
        PathType.DIRECT.value: 20.0,
        PathType.ORG_DIRECT.value: 55.0,
        PathType.ORG_INDIRECT.value: 40.0,
        PathType.SHARED_THIRD_PARTY.value: 35.0,
        PathType.CHAIN_AFFINITY.value: 25.0,
    }


def _default_multipliers() -> dict[str, float]:
    return {
        EdgeType.WORKS_AT.value: 1.8,
        EdgeType.INVESTED_IN.value: 1.5,
        EdgeType.AUDITS.value: 1.3,
        EdgeType.PARTNERS_WITH.value: 1.2,
        EdgeType.WORKED_AT.value: 1.0,
        EdgeType.MEMBER_OF.value: 1.0,
        EdgeType.AFFILIATED_WITH.value: 0.9,
        EdgeType.FOLLOWS.value: 0.8,
    }


@dataclass(frozen=True)
class ScoreWeights:
    """Constants for the relevancy formula.

    Bases are keyed by path type value, multipliers by edge type value.
    """

    version: str = "2024.1"

    base_by_type: dict[str, float] = field(default_factory=_default_bases)
    multiplier_by_relation: dict[str, float] = field(default_factory=_default_multipliers)
    default_multiplier: float = 1.0

    followers_weight: float = 4.0
    listed_weight: float = 3.0
    age_weight_per_year: float = 2.0
    max_age_years: float = 10.0
    verified_bonus: float = 8.0
    business_bonus: float = 15.0

    extra_type_bonus: float = 20.0
    extra_org_bonus: float = 8.0
    reciprocal_bonus: float = 15.0

    half_life_days: float = 90.0
    min_freshness: float = 0.3

    def __post_init__(self) -> None:
        for path_type in PathType:
            if path_type.value not in self.base_by_type:
                raise ValidationError(f"missing base weight for {path_type.value}")
        for key in self.multiplier_by_relation:
            if key not in {t.value for t in EdgeType}:
                raise ValidationError(f"unknown relation in multipliers: {key}")

        numbers = [
            *self.base_by_type.values(),
            *self.multiplier_by_relation.values(),
            self.default_multiplier,
            self.followers_weight,
            self.listed_weight,
            self.age_weight_per_year,
            self.max_age_years,
            self.verified_bonus,
            self.business_bonus,
            self.extra_type_bonus,
            self.extra_org_bonus,
            self.reciprocal_bonus,
        ]
        if any(value < 0 for value in numbers):
            raise ValidationError("score weights must be non-negative")
        if self.half_life_days <= 0:
            raise ValidationError("half_life_days must be positive")
        if not 0.0 < self.min_freshness <= 1.0:
            raise ValidationError("min_freshness must be in (0, 1]")

    def base_for(self, path_type: PathType) -> float:
        return self.base_by_type[path_type.value]

    def multiplier_for(self, edge_type: EdgeType) -> float:
        return self.multiplier_by_relation.get(edge_type.value, self.default_multiplier)

    @classmethod
    def from_dict(cls, data: dict) -> "ScoreWeights":
        """Overlay a partial mapping on the defaults. Unknown keys are rejected."""
        if not isinstance(data, dict):
            raise ValidationError("score weights must be a mapping")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValidationError(f"unknown score weight keys: {', '.join(unknown)}")

        values = dict(data)
        if "version" in values:
            values["version"] = str(values["version"])
        for key in ("base_by_type", "multiplier_by_relation"):
            if key in values:
                overrides = values[key]
                if not isinstance(overrides, dict):
                    raise ValidationError(f"{key} must be a mapping")
                defaults = _default_bases() if key == "base_by_type" else _default_multipliers()
                merged = {**defaults}
                for name, weight in overrides.items():
                    normalized = str(name).lower() if key == "base_by_type" else str(name).upper()
                    merged[normalized] = float(weight)
                values[key] = merged
        try:
            return cls(**values)
        except TypeError as exc:
            raise ValidationError(str(exc)) from exc

    @classmethod
    def from_yaml(cls, path: str | Path) -> "ScoreWeights":
        """Load a weight table from a YAML file."""
        try:
            data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ValidationError(f"invalid weights file {path}: {exc}") from exc
        return cls.from_dict(data)


DEFAULT_SCORE_WEIGHTS = ScoreWeights()
