from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict

DEFAULT_MAX_LEVEL = 3


class MaturityStatus(str, Enum):
    INITIAL = "Initial"
    DEFINED = "Defined"
    MANAGED = "Managed"
    OPTIMIZED = "Optimized"


class LevelStatus(str, Enum):
    ACHIEVED = "achieved"
    BLOCKED = "blocked"
    NOT_ACHIEVED = "not_achieved"


class Outcome(str, Enum):
    NOT_ASSESSED = "not_assessed"
    EFFECTIVE = "effective"
    ALTERNATE_CONTROL = "alternate_control"
    INEFFECTIVE = "ineffective"
    NO_VISIBILITY = "no_visibility"
    NOT_IMPLEMENTED = "not_implemented"
    NOT_APPLICABLE = "not_applicable"


class EvidenceQuality(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


@dataclass
class MaturityAssessment:
    control_id: str
    level_achievement: Dict[int, bool] = field(default_factory=dict)
    target_level: int = 1
    maturity_score: int = 0
    maturity_score_is_manual: bool = False
    max_level: int = DEFAULT_MAX_LEVEL
    outcome: Outcome = Outcome.NOT_ASSESSED
    evidence_quality: EvidenceQuality = EvidenceQuality.POOR
    quality_criteria: Dict[int, Dict[int, bool]] = field(default_factory=dict)
    level_notes: Dict[int, str] = field(default_factory=dict)
    notes: str = ""


@dataclass
class ImprovementTask:
    control_id: str
    current_level: int
    target_level: int
    gap: int
    priority: str
    title: str
    description: str


@dataclass
class MaturitySummary:
    overall_score: float
    overall_target: float
    assessed_count: int
