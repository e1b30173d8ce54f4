from __future__ import annotations

import pytest

from assurance_cli.exceptions import InvalidInputError
from assurance_cli.models.maturity import MaturityAssessment
from assurance_cli.models.risks import (
    AssessmentStatus,
    ControlEffectiveness,
    Likelihood,
    RiskAssessment,
    RiskLevel,
)
from assurance_cli.session.rules import MaturityAssessmentRules, RiskAssessmentRules


class TestRiskAssessmentRules:
    def test_defaults_are_consistent(self) -> None:
        assessment = RiskAssessmentRules().defaults()
        assert assessment.inherent_risk is RiskLevel.HIGH
        assert assessment.residual_risk is RiskLevel.LOW
        assert assessment.residual_risk_is_manual is False

    def test_input_edit_recomputes(self) -> None:
        rules = RiskAssessmentRules()
        assessment = rules.defaults()
        rules.apply_edit(assessment, "likelihood", "Almost Certain")
        rules.apply_edit(assessment, "impact", "Very High")
        rules.apply_edit(assessment, "control_effectiveness", "Ineffective")
        assert assessment.inherent_risk is RiskLevel.VERY_HIGH
        assert assessment.residual_risk is RiskLevel.VERY_HIGH

    def test_manual_residual_survives_input_changes(self) -> None:
        rules = RiskAssessmentRules()
        assessment = rules.defaults()
        rules.apply_edit(assessment, "residual_risk", "Very High")
        assert assessment.residual_risk_is_manual is True

        rules.apply_edit(assessment, "control_effectiveness", "Partially Effective")
        assert assessment.residual_risk is RiskLevel.VERY_HIGH
        assert assessment.residual_risk_is_manual is True

    def test_reset_to_auto_recomputes_immediately(self) -> None:
        rules = RiskAssessmentRules()
        assessment = rules.defaults()
        rules.apply_edit(assessment, "residual_risk", "Very High")
        rules.apply_edit(assessment, "control_effectiveness", "Partially Effective")

        rules.set_manual_override(assessment, "residual_risk", False)
        assert assessment.residual_risk_is_manual is False
        assert assessment.residual_risk is RiskLevel.MEDIUM

    def test_setting_derived_value_does_not_pin(self) -> None:
        rules = RiskAssessmentRules()
        assessment = rules.defaults()
        rules.apply_edit(assessment, "residual_risk", "Low")
        assert assessment.residual_risk_is_manual is False

    def test_manual_flag_field_edit(self) -> None:
        rules = RiskAssessmentRules()
        assessment = rules.defaults()
        rules.apply_edit(assessment, "residual_risk_is_manual", "true")
        rules.apply_edit(assessment, "impact", "Low")
        assert assessment.residual_risk is RiskLevel.LOW
        assert assessment.inherent_risk is RiskLevel.LOW

    def test_inherent_risk_not_editable(self) -> None:
        rules = RiskAssessmentRules()
        assessment = rules.defaults()
        with pytest.raises(InvalidInputError, match="cannot be set directly"):
            rules.apply_edit(assessment, "inherent_risk", "Low")

    def test_rejected_edit_leaves_entity_unchanged(self) -> None:
        rules = RiskAssessmentRules()
        assessment = rules.defaults()
        before = RiskAssessment(**vars(assessment))
        with pytest.raises(InvalidInputError):
            rules.apply_edit(assessment, "likelihood", "Often")
        assert assessment == before

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(InvalidInputError, match="Unknown risk assessment field 'colour'"):
            RiskAssessmentRules().apply_edit(RiskAssessment(), "colour", "red")

    def test_only_residual_is_overridable(self) -> None:
        with pytest.raises(InvalidInputError, match="Only residual_risk is overridable"):
            RiskAssessmentRules().set_manual_override(RiskAssessment(), "impact", True)

    def test_descriptive_fields(self) -> None:
        rules = RiskAssessmentRules()
        assessment = rules.defaults()
        rules.apply_edit(assessment, "title", "Phishing")
        rules.apply_edit(assessment, "status", "approved")
        assert assessment.title == "Phishing"
        assert assessment.status is AssessmentStatus.APPROVED
        assert rules.describe(assessment) == "Phishing"

    def test_adopt_marks_mismatched_residual_manual(self) -> None:
        loaded = RiskAssessment(
            likelihood=Likelihood.LIKELY,
            control_effectiveness=ControlEffectiveness.EFFECTIVE,
            residual_risk=RiskLevel.HIGH,
        )
        adopted = RiskAssessmentRules().adopt(loaded)
        assert adopted.residual_risk is RiskLevel.HIGH
        assert adopted.residual_risk_is_manual is True

    def test_adopt_rederives_inherent(self) -> None:
        loaded = RiskAssessment(inherent_risk=RiskLevel.LOW)
        assert RiskAssessmentRules().adopt(loaded).inherent_risk is RiskLevel.HIGH

    def test_no_levels_on_risks(self) -> None:
        with pytest.raises(InvalidInputError, match="has no maturity levels"):
            RiskAssessmentRules().set_level_achievement(RiskAssessment(), 1, True)


class TestMaturityAssessmentRules:
    def test_level_achievement_recomputes_score(self) -> None:
        rules = MaturityAssessmentRules("E8-1")
        assessment = rules.defaults()
        rules.set_level_achievement(assessment, 1, True)
        rules.set_level_achievement(assessment, 3, "yes")
        assert assessment.maturity_score == 1
        rules.set_level_achievement(assessment, "2", True)
        assert assessment.maturity_score == 3

    def test_manual_score_survives_level_changes(self) -> None:
        rules = MaturityAssessmentRules("E8-1")
        assessment = rules.defaults()
        rules.apply_edit(assessment, "maturity_score", 2)
        assert assessment.maturity_score_is_manual is True

        rules.set_level_achievement(assessment, 1, True)
        assert assessment.maturity_score == 2

        rules.set_manual_override(assessment, "maturity_score", False)
        assert assessment.maturity_score == 1
        assert assessment.maturity_score_is_manual is False

    @pytest.mark.parametrize("level", [0, 4, "x"])
    def test_invalid_level_rejected(self, level: object) -> None:
        rules = MaturityAssessmentRules("E8-1")
        assessment = rules.defaults()
        with pytest.raises(InvalidInputError):
            rules.set_level_achievement(assessment, level, True)
        assert assessment.level_achievement == {}

    def test_score_outside_model_rejected(self) -> None:
        rules = MaturityAssessmentRules("E8-1")
        with pytest.raises(InvalidInputError, match="Expected a value between 0 and 3"):
            rules.apply_edit(rules.defaults(), "maturity_score", 4)

    def test_level_achievement_field_replaced(self) -> None:
        rules = MaturityAssessmentRules("E8-1")
        assessment = rules.defaults()
        rules.apply_edit(assessment, "level_achievement", {"1": True, "2": True})
        assert assessment.maturity_score == 2

    def test_target_level_range(self) -> None:
        rules = MaturityAssessmentRules("E8-1")
        assessment = rules.defaults()
        rules.apply_edit(assessment, "target_level", "3")
        assert assessment.target_level == 3
        with pytest.raises(InvalidInputError):
            rules.apply_edit(assessment, "target_level", 0)

    def test_only_score_is_overridable(self) -> None:
        rules = MaturityAssessmentRules("E8-1")
        with pytest.raises(InvalidInputError, match="Only maturity_score is overridable"):
            rules.set_manual_override(rules.defaults(), "target_level", True)

    def test_adopt_marks_mismatched_score_manual(self) -> None:
        loaded = MaturityAssessment(control_id="E8-5", level_achievement={1: True}, maturity_score=3)
        adopted = MaturityAssessmentRules("E8-5").adopt(loaded)
        assert adopted.maturity_score_is_manual is True

    def test_model_needs_a_level(self) -> None:
        with pytest.raises(InvalidInputError):
            MaturityAssessmentRules("E8-1", max_level=0)
