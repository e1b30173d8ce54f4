from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class _OrderedEnum(str, Enum):
    """String enum whose members are ranked in declaration order."""

    @property
    def rank(self) -> int:
        return list(type(self)).index(self)

    def __str__(self) -> str:
        return str(self.value)


class Likelihood(_OrderedEnum):
    RARE = "Rare"
    UNLIKELY = "Unlikely"
    POSSIBLE = "Possible"
    LIKELY = "Likely"
    ALMOST_CERTAIN = "Almost Certain"


class Impact(_OrderedEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    VERY_HIGH = "Very High"


class RiskLevel(_OrderedEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    VERY_HIGH = "Very High"


class ControlEffectiveness(_OrderedEnum):
    INEFFECTIVE = "Ineffective"
    PARTIALLY_EFFECTIVE = "Partially Effective"
    EFFECTIVE = "Effective"


class TreatmentOption(_OrderedEnum):
    NONE = "None"
    MITIGATE = "Mitigate"
    ACCEPT = "Accept"
    TRANSFER = "Transfer"
    AVOID = "Avoid"


class Priority(_OrderedEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class AssessmentStatus(_OrderedEnum):
    DRAFT = "draft"
    REVIEWED = "reviewed"
    APPROVED = "approved"


@dataclass
class RiskAssessment:
    likelihood: Likelihood = Likelihood.POSSIBLE
    impact: Impact = Impact.HIGH
    inherent_risk: RiskLevel = RiskLevel.HIGH
    control_effectiveness: ControlEffectiveness = ControlEffectiveness.EFFECTIVE
    residual_risk: RiskLevel = RiskLevel.LOW
    residual_risk_is_manual: bool = False
    id: Optional[int] = None
    assessment_id: str = ""
    title: str = ""
    risk_owner: str = ""
    treatment_option: TreatmentOption = TreatmentOption.NONE
    target_residual_risk: RiskLevel = RiskLevel.LOW
    priority: Priority = Priority.MEDIUM
    status: AssessmentStatus = AssessmentStatus.DRAFT
    notes: str = ""
