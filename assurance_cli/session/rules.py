from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Generic, Mapping, TypeVar

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
from assurance_cli.parsers import coerce_bool, coerce_enum, coerce_int, coerce_level
from assurance_cli.scoring.maturity_ladder import derive_maturity_score
from assurance_cli.scoring.risk_matrix import derive_inherent_risk, derive_residual_risk

T = TypeVar("T")


class AssessmentRules(ABC, Generic[T]):
    """Field validation and derived-field policy for one kind of assessment.

    Every mutating method validates first and only then touches the entity,
    so a rejected edit leaves it unchanged.
    """

    @abstractmethod
    def defaults(self) -> T:
        ...

    @abstractmethod
    def adopt(self, entity: T) -> T:
        """Bring a loaded record in line with the derivation rules."""
        ...

    @abstractmethod
    def apply_edit(self, entity: T, field_name: str, value: Any) -> None:
        ...

    @abstractmethod
    def set_manual_override(self, entity: T, field_name: str, manual: bool) -> None:
        ...

    def set_level_achievement(self, entity: T, level: Any, achieved: Any) -> None:
        raise InvalidInputError(f"{type(entity).__name__} has no maturity levels.")

    @abstractmethod
    def describe(self, entity: T) -> str:
        ...


def _text(value: Any, field_name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidInputError(f"Invalid {field_name} {value!r}. Expected text.")
    return value


class RiskAssessmentRules(AssessmentRules[RiskAssessment]):
    _INPUTS: Dict[str, Callable[[Any], Any]] = {
        "likelihood": lambda v: coerce_enum(Likelihood, v, "likelihood"),
        "impact": lambda v: coerce_enum(Impact, v, "impact"),
        "control_effectiveness": lambda v: coerce_enum(
            ControlEffectiveness, v, "control effectiveness",
        ),
    }
    _DESCRIPTIVE: Dict[str, Callable[[Any], Any]] = {
        "assessment_id": lambda v: _text(v, "assessment id"),
        "title": lambda v: _text(v, "title"),
        "risk_owner": lambda v: _text(v, "risk owner"),
        "notes": lambda v: _text(v, "notes"),
        "treatment_option": lambda v: coerce_enum(TreatmentOption, v, "treatment option"),
        "target_residual_risk": lambda v: coerce_enum(RiskLevel, v, "target residual risk"),
        "priority": lambda v: coerce_enum(Priority, v, "priority"),
        "status": lambda v: coerce_enum(AssessmentStatus, v, "status"),
    }

    def defaults(self) -> RiskAssessment:
        assessment = RiskAssessment()
        self._recompute(assessment)
        return assessment

    def adopt(self, entity: RiskAssessment) -> RiskAssessment:
        entity.inherent_risk = derive_inherent_risk(entity.likelihood, entity.impact)
        derived = derive_residual_risk(entity.inherent_risk, entity.control_effectiveness)
        if entity.residual_risk != derived:
            entity.residual_risk_is_manual = True
        return entity

    def apply_edit(self, entity: RiskAssessment, field_name: str, value: Any) -> None:
        if field_name in self._INPUTS:
            setattr(entity, field_name, self._INPUTS[field_name](value))
            self._recompute(entity)
        elif field_name == "residual_risk":
            level = coerce_enum(RiskLevel, value, "residual risk")
            derived = derive_residual_risk(entity.inherent_risk, entity.control_effectiveness)
            entity.residual_risk = level
            if level != derived:
                entity.residual_risk_is_manual = True
        elif field_name == "residual_risk_is_manual":
            self.set_manual_override(entity, "residual_risk", coerce_bool(value, field_name))
        elif field_name == "inherent_risk":
            raise InvalidInputError(
                "Inherent risk is derived from likelihood and impact and cannot be set directly."
            )
        elif field_name in self._DESCRIPTIVE:
            setattr(entity, field_name, self._DESCRIPTIVE[field_name](value))
        else:
            raise InvalidInputError(f"Unknown risk assessment field '{field_name}'.")

    def set_manual_override(self, entity: RiskAssessment, field_name: str, manual: bool) -> None:
        if field_name != "residual_risk":
            raise InvalidInputError(
                f"Field '{field_name}' cannot be overridden. Only residual_risk is overridable."
            )
        entity.residual_risk_is_manual = coerce_bool(manual, "manual override")
        self._recompute(entity)

    def describe(self, entity: RiskAssessment) -> str:
        return entity.assessment_id or entity.title or "risk assessment"

    @staticmethod
    def _recompute(entity: RiskAssessment) -> None:
        entity.inherent_risk = derive_inherent_risk(entity.likelihood, entity.impact)
        if not entity.residual_risk_is_manual:
            entity.residual_risk = derive_residual_risk(
                entity.inherent_risk, entity.control_effectiveness,
            )


class MaturityAssessmentRules(AssessmentRules[MaturityAssessment]):
    def __init__(self, control_id: str = "", max_level: int = DEFAULT_MAX_LEVEL) -> None:
        if max_level < 1:
            raise InvalidInputError("A maturity model needs at least one level.")
        self.control_id = control_id
        self.max_level = max_level

    def defaults(self) -> MaturityAssessment:
        return MaturityAssessment(control_id=self.control_id, max_level=self.max_level)

    def adopt(self, entity: MaturityAssessment) -> MaturityAssessment:
        entity.max_level = self.max_level
        derived = derive_maturity_score(entity.level_achievement, self.max_level)
        if entity.maturity_score != derived:
            entity.maturity_score_is_manual = True
        return entity

    def apply_edit(self, entity: MaturityAssessment, field_name: str, value: Any) -> None:
        if field_name == "level_achievement":
            entity.level_achievement = self._levels(value)
            self._recompute(entity)
        elif field_name == "maturity_score":
            score = coerce_int(value, "maturity score", 0, self.max_level)
            entity.maturity_score = score
            if score != derive_maturity_score(entity.level_achievement, self.max_level):
                entity.maturity_score_is_manual = True
        elif field_name == "maturity_score_is_manual":
            self.set_manual_override(entity, "maturity_score", coerce_bool(value, field_name))
        elif field_name == "target_level":
            entity.target_level = coerce_int(value, "target level", 1, self.max_level)
        elif field_name == "outcome":
            entity.outcome = coerce_enum(Outcome, value, "outcome")
        elif field_name == "evidence_quality":
            entity.evidence_quality = coerce_enum(EvidenceQuality, value, "evidence quality")
        elif field_name == "notes":
            entity.notes = _text(value, "notes")
        elif field_name == "level_notes":
            if not isinstance(value, Mapping):
                raise InvalidInputError("Invalid level notes: expected a mapping.")
            entity.level_notes = {
                coerce_level(level, self.max_level): _text(text, "level notes")
                for level, text in value.items()
            }
        elif field_name == "quality_criteria":
            if not isinstance(value, Mapping):
                raise InvalidInputError("Invalid quality criteria: expected a mapping.")
            criteria: Dict[int, Dict[int, bool]] = {}
            for level, checks in value.items():
                if not isinstance(checks, Mapping):
                    raise InvalidInputError("Invalid quality criteria: expected a mapping.")
                criteria[coerce_level(level, self.max_level)] = {
                    coerce_int(index, "criterion index", 0, 10_000): coerce_bool(checked, "criterion")
                    for index, checked in checks.items()
                }
            entity.quality_criteria = criteria
        else:
            raise InvalidInputError(f"Unknown maturity assessment field '{field_name}'.")

    def set_level_achievement(self, entity: MaturityAssessment, level: Any, achieved: Any) -> None:
        number = coerce_level(level, self.max_level)
        flag = coerce_bool(achieved, f"level {number} achievement")
        entity.level_achievement[number] = flag
        self._recompute(entity)

    def set_manual_override(self, entity: MaturityAssessment, field_name: str, manual: bool) -> None:
        if field_name != "maturity_score":
            raise InvalidInputError(
                f"Field '{field_name}' cannot be overridden. Only maturity_score is overridable."
            )
        entity.maturity_score_is_manual = coerce_bool(manual, "manual override")
        self._recompute(entity)

    def describe(self, entity: MaturityAssessment) -> str:
        return entity.control_id or "maturity assessment"

    def _levels(self, value: Any) -> Dict[int, bool]:
        if not isinstance(value, Mapping):
            raise InvalidInputError("Invalid level achievement: expected a mapping.")
        return {
            coerce_level(level, self.max_level): coerce_bool(achieved, f"level {level} achievement")
            for level, achieved in value.items()
        }

    def _recompute(self, entity: MaturityAssessment) -> None:
        if not entity.maturity_score_is_manual:
            entity.maturity_score = derive_maturity_score(entity.level_achievement, self.max_level)
