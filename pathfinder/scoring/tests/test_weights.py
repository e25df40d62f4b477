import pytest

from pathfinder.discovery.types import PathType
from pathfinder.errors import ValidationError
from pathfinder.graph.schema import EdgeType
from pathfinder.scoring.weights import DEFAULT_SCORE_WEIGHTS, ScoreWeights


class TestScoreWeights:
    def test_default_multiplier_ordering(self):
        w = DEFAULT_SCORE_WEIGHTS
        assert w.multiplier_for(EdgeType.WORKS_AT) > w.multiplier_for(EdgeType.AFFILIATED_WITH)
        assert w.multiplier_for(EdgeType.AFFILIATED_WITH) > w.multiplier_for(EdgeType.FOLLOWS)

    def test_from_yaml_overlays_defaults(self, tmp_path):
        path = tmp_path / "weights.yaml"
        path.write_text(
            "version: \"2025-02\"\n"
            "base_by_type:\n"
            "  DIRECT: 10\n"
            "multiplier_by_relation:\n"
            "  works_at: 2.0\n"
            "reciprocal_bonus: 5\n",
            encoding="utf-8",
        )

        weights = ScoreWeights.from_yaml(path)

        assert weights.version == "2025-02"
        assert weights.base_for(PathType.DIRECT) == 10.0
        assert weights.base_for(PathType.ORG_DIRECT) == 55.0
        assert weights.multiplier_for(EdgeType.WORKS_AT) == 2.0
        assert weights.reciprocal_bonus == 5

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValidationError):
            ScoreWeights.from_dict({"bogus": 1})

    def test_unknown_relation_rejected(self):
        with pytest.raises(ValidationError):
            ScoreWeights.from_dict({"multiplier_by_relation": {"KNOWS": 1.0}})

    def test_negative_weight_rejected(self):
        with pytest.raises(ValidationError):
            ScoreWeights(verified_bonus=-1)

    def test_freshness_floor_must_be_in_unit_interval(self):
        with pytest.raises(ValidationError):
            ScoreWeights(min_freshness=0.0)

    def test_missing_base_rejected(self):
        with pytest.raises(ValidationError):
            ScoreWeights(base_by_type={"direct": 1.0})

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "weights.yaml"
        path.write_text("base_by_type: [unclosed\n", encoding="utf-8")
        with pytest.raises(ValidationError):
            ScoreWeights.from_yaml(path)
