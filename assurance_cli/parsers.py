"""Conversion between the hosting application's wire format and the models.

All validation of user- or API-supplied values happens here, so the scoring
functions only ever see members of their enumerations.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Mapping, Type, TypeVar

from assurance_cli.exceptions import InvalidInputError
from assurance_cli.models.maturity import (
    DEFAULT_MAX_LEVEL,
    EvidenceQuality,
    MaturityAssessment,
    Outcome,
)
from assurance_cli.models.risks import (
    AssessmentStatus,
    ControlEffectiveness,
    Impact,
    Likelihood,
    Priority,
    RiskAssessment,
    RiskLevel,
    TreatmentOption,
)
from assurance_cli.scoring.maturity_ladder import derive_maturity_score
from assurance_cli.scoring.risk_matrix import derive_inherent_risk, derive_residual_risk

E = TypeVar("E", bound=Enum)

_TRUE_STRINGS = ("true", "yes", "y", "1", "on")
_FALSE_STRINGS = ("false", "no", "n", "0", "off")


def coerce_enum(enum_cls: Type[E], value: Any, field_name: str) -> E:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        for member in enum_cls:
            if text in (str(member.value).lower(), member.name.lower()):
                return member
    allowed = ", ".join(str(member.value) for member in enum_cls)
    raise InvalidInputError(
        f"Invalid {field_name} {value!r}. Expected one of: {allowed}."
    )


def coerce_bool(value: Any, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise InvalidInputError(f"Invalid {field_name} {value!r}. Expected true or false.")


def coerce_int(value: Any, field_name: str, minimum: int, maximum: int) -> int:
    number: Any = value
    if isinstance(value, str):
        try:
            number = int(value.strip())
        except ValueError:
            number = None
    if not isinstance(number, int) or isinstance(number, bool):
        raise InvalidInputError(f"Invalid {field_name} {value!r}. Expected a whole number.")
    if number < minimum or number > maximum:
        raise InvalidInputError(
            f"Invalid {field_name} {number}. Expected a value between {minimum} and {maximum}."
        )
    return number


def coerce_level(value: Any, max_level: int) -> int:
    return coerce_int(value, "maturity level", 1, max_level)


def parse_risk_assessment(raw: Mapping[str, Any]) -> RiskAssessment:
    likelihood = coerce_enum(Likelihood, raw.get("likelihood") or Likelihood.POSSIBLE, "likelihood")
    impact = coerce_enum(Impact, raw.get("impact") or Impact.HIGH, "impact")
    effectiveness = coerce_enum(
        ControlEffectiveness,
        raw.get("controlEffectiveness") or ControlEffectiveness.EFFECTIVE,
        "control effectiveness",
    )

    if raw.get("inherentRisk"):
        inherent = coerce_enum(RiskLevel, raw["inherentRisk"], "inherent risk")
    else:
        inherent = derive_inherent_risk(likelihood, impact)

    if raw.get("residualRisk"):
        residual = coerce_enum(RiskLevel, raw["residualRisk"], "residual risk")
    else:
        residual = derive_residual_risk(inherent, effectiveness)

    raw_id = raw.get("id")
    return RiskAssessment(
        likelihood=likelihood,
        impact=impact,
        inherent_risk=inherent,
        control_effectiveness=effectiveness,
        residual_risk=residual,
        residual_risk_is_manual=coerce_bool(raw.get("residualRiskIsManual", False), "residualRiskIsManual"),
        id=raw_id if isinstance(raw_id, int) and not isinstance(raw_id, bool) else None,
        assessment_id=str(raw.get("assessmentId", "") or ""),
        title=str(raw.get("title", "") or "").strip(),
        risk_owner=str(raw.get("riskOwner", "") or ""),
        treatment_option=coerce_enum(
            TreatmentOption, raw.get("treatmentOption") or TreatmentOption.NONE, "treatment option",
        ),
        target_residual_risk=coerce_enum(
            RiskLevel, raw.get("targetResidualRisk") or RiskLevel.LOW, "target residual risk",
        ),
        priority=coerce_enum(Priority, raw.get("priority") or Priority.MEDIUM, "priority"),
        status=coerce_enum(AssessmentStatus, raw.get("status") or AssessmentStatus.DRAFT, "status"),
        notes=str(raw.get("notes", "") or ""),
    )


def parse_maturity_assessment(
    raw: Mapping[str, Any],
    max_level: int = DEFAULT_MAX_LEVEL,
) -> MaturityAssessment:
    control_id = str(raw.get("controlId", "") or "").strip()
    if not control_id:
        raise InvalidInputError("Maturity assessment is missing its controlId.")

    achievement: Dict[int, bool] = {}
    for key, value in _as_mapping(raw.get("assessmentAnswers"), "assessmentAnswers").items():
        achievement[coerce_level(key, max_level)] = coerce_bool(value, f"level {key} achievement")

    quality: Dict[int, Dict[int, bool]] = {}
    for key, criteria in _as_mapping(raw.get("qualityCriteria"), "qualityCriteria").items():
        level = coerce_level(key, max_level)
        quality[level] = {
            coerce_int(index, "criterion index", 0, 10_000): coerce_bool(checked, "criterion")
            for index, checked in _as_mapping(criteria, "qualityCriteria").items()
        }

    level_notes: Dict[int, str] = {}
    for key, text in _as_mapping(raw.get("levelNotes"), "levelNotes").items():
        level_notes[coerce_level(key, max_level)] = str(text or "")

    derived = derive_maturity_score(achievement, max_level)
    raw_score = raw.get("maturityLevel")
    score = derived if raw_score is None else coerce_int(raw_score, "maturity level", 0, max_level)

    return MaturityAssessment(
        control_id=control_id,
        level_achievement=achievement,
        target_level=coerce_int(raw.get("targetLevel", 1), "target level", 1, max_level),
        maturity_score=score,
        maturity_score_is_manual=coerce_bool(
            raw.get("maturityLevelIsManual", False), "maturityLevelIsManual",
        ),
        max_level=max_level,
        outcome=coerce_enum(Outcome, raw.get("outcome") or Outcome.NOT_ASSESSED, "outcome"),
        evidence_quality=coerce_enum(
            EvidenceQuality, raw.get("evidenceQuality") or EvidenceQuality.POOR, "evidence quality",
        ),
        quality_criteria=quality,
        level_notes=level_notes,
        notes=str(raw.get("notes", "") or ""),
    )


def risk_assessment_to_payload(assessment: RiskAssessment) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    if assessment.id is not None:
        payload["id"] = assessment.id
    payload.update({
        "assessmentId": assessment.assessment_id,
        "title": assessment.title,
        "likelihood": assessment.likelihood.value,
        "impact": assessment.impact.value,
        "inherentRisk": assessment.inherent_risk.value,
        "controlEffectiveness": assessment.control_effectiveness.value,
        "residualRisk": assessment.residual_risk.value,
        "residualRiskIsManual": assessment.residual_risk_is_manual,
        "riskOwner": assessment.risk_owner,
        "treatmentOption": assessment.treatment_option.value,
        "targetResidualRisk": assessment.target_residual_risk.value,
        "priority": assessment.priority.value,
        "status": assessment.status.value,
        "notes": assessment.notes,
    })
    return payload


def maturity_assessment_to_payload(assessment: MaturityAssessment) -> Dict[str, Any]:
    return {
        "controlId": assessment.control_id,
        "maturityLevel": assessment.maturity_score,
        "maturityLevelIsManual": assessment.maturity_score_is_manual,
        "targetLevel": assessment.target_level,
        "assessmentAnswers": {
            str(level): achieved
            for level, achieved in sorted(assessment.level_achievement.items())
        },
        "qualityCriteria": {
            str(level): {str(index): checked for index, checked in sorted(criteria.items())}
            for level, criteria in sorted(assessment.quality_criteria.items())
        },
        "levelNotes": {str(level): text for level, text in sorted(assessment.level_notes.items())},
        "outcome": assessment.outcome.value,
        "evidenceQuality": assessment.evidence_quality.value,
        "notes": assessment.notes,
    }


def _as_mapping(value: Any, field_name: str) -> Mapping[Any, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise InvalidInputError(f"Invalid {field_name}: expected a mapping.")
    return value


def records(response: Any, *keys: str) -> List[Dict[str, Any]]:
    """Pull the list of records out of a list response or a wrapping object."""
    if isinstance(response, dict):
        for key in keys:
            if isinstance(response.get(key), list):
                response = response[key]
                break
    if not isinstance(response, list):
        return []
    return [item for item in response if isinstance(item, dict)]
