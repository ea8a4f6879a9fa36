"""
Curator Persona and Calibration Tests
tests/test_personas.py
"""
import pytest

from curation.core.exceptions import PersonaNotFoundException, ValidationError
from curation.models.enumerations import Verdict
from curation.scoring.calibration import check_gold_standard
from curation.scoring.personas import DEFAULT_PENALTIES, get_persona, list_personas
from curation.scoring.scorer import RawScoreSet, score_item

PERSONA_IDS = ["nina", "warhol", "abramovic", "adams", "scher", "kusama", "bourgeois", "koons"]


class TestPersonas:

    def test_all_built_in_personas_present(self):
        assert [p.id for p in list_personas()] == PERSONA_IDS

    @pytest.mark.parametrize("curator_id", PERSONA_IDS)
    def test_registries_normalized(self, curator_id):
        persona = get_persona(curator_id)
        assert persona.registry.is_normalized
        assert len(persona.registry) == 5
        assert persona.thresholds.maybe_min == persona.thresholds.include_min - 20
        assert len(persona.compare_keys) == 3
        assert persona.tie_break_key not in persona.compare_keys

    def test_nina_configuration(self):
        nina = get_persona("nina")
        assert nina.registry.weights == {
            "paris_photo_ready": 30,
            "ai_criticality": 25,
            "conceptual_strength": 20,
            "technical_excellence": 15,
            "cultural_dialogue": 10,
        }
        assert nina.compare_keys == ("paris_photo_ready", "ai_criticality", "conceptual_strength")
        assert nina.tie_break_key == "technical_excellence"
        assert nina.thresholds.include_min == 75
        assert nina.thresholds.maybe_min == 55
        assert nina.penalties is DEFAULT_PENALTIES

    def test_adams_strictest(self):
        adams = get_persona("adams")
        assert adams.thresholds.include_min == 80
        assert adams.compare_keys[0] == "technical_excellence"

    def test_lookup_is_case_insensitive(self):
        assert get_persona(" Nina ").id == "nina"

    def test_unknown_persona_raises_key_error(self):
        with pytest.raises(KeyError):
            get_persona("banksy")
        with pytest.raises(PersonaNotFoundException) as exc_info:
            get_persona("banksy")
        assert exc_info.value.curator_id == "banksy"

    def test_with_thresholds(self):
        nina = get_persona("nina")
        strict = nina.with_thresholds(include_min=85)
        assert strict.thresholds.include_min == 85
        assert strict.thresholds.maybe_min == 55
        assert nina.thresholds.include_min == 75
        assert nina.with_thresholds() is nina

    def test_default_penalties(self):
        assert DEFAULT_PENALTIES.delta("artifacting") == -10
        assert DEFAULT_PENALTIES.delta("weak_print") == -10
        assert DEFAULT_PENALTIES.delta("derivative") == -5
        assert DEFAULT_PENALTIES.delta("halo_edge") == -7
        assert DEFAULT_PENALTIES.delta("resolution_limit") == 0

    def test_detail_shape(self):
        detail = get_persona("warhol").detail()
        assert detail["weights"]["commercial_appeal"] == 35
        assert detail["thresholds"] == {"include_min": 60.0, "maybe_min": 40.0}
        assert "artifacting" in detail["penalties"]["penalties"]


class TestGoldStandard:

    def _nina_item(self, value):
        nina = get_persona("nina")
        return score_item(
            nina.registry,
            RawScoreSet({k: value for k in nina.registry.keys}),
            nina.penalties,
            nina.thresholds,
        )

    def test_high_quality_within_tolerance(self):
        result = check_gold_standard(self._nina_item(80), "high_quality")
        assert result.expected_score == 85
        assert result.actual_score == pytest.approx(80.0)
        assert result.drift == pytest.approx(5.0)
        assert result.verdict_match
        assert result.warning is None

    def test_drift_warning(self):
        result = check_gold_standard(self._nina_item(40), "medium_quality")
        assert result.drift == pytest.approx(30.0)
        assert result.warning is not None
        assert result.expected_verdict == Verdict.MAYBE.value
        assert result.actual_verdict == Verdict.EXCLUDE.value
        assert not result.verdict_match

    def test_low_quality_match(self):
        result = check_gold_standard(self._nina_item(45), "low_quality")
        assert result.verdict_match
        assert result.drift == pytest.approx(0.0)

    def test_unknown_gold_type(self):
        with pytest.raises(ValidationError):
            check_gold_standard(self._nina_item(50), "platinum")
