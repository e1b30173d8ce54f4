"""Lookup tables translating categorical risk inputs into risk levels.

Inherent risk (rows: likelihood, columns: impact)::

                    Low     Medium  High       Very High
    Rare            Low     Low     Medium     Medium
    Unlikely        Low     Medium  Medium     High
    Possible        Low     Medium  High       High
    Likely          Medium  High    High       Very High
    Almost Certain  Medium  High    Very High  Very High

Residual risk (rows: inherent risk, columns: control effectiveness)::

                Ineffective  Partially Effective  Effective
    Low         Low          Low                  Low
    Medium      Medium       Low                  Low
    High        High         Medium               Low
    Very High   Very High    High                 Medium

Both tables are non-decreasing along every row and column of their risk inputs,
and the residual table is non-increasing as control effectiveness improves.
"""

from __future__ import annotations

from typing import Dict, Iterable, Tuple

from assurance_cli.models.risks import (
    ControlEffectiveness,
    Impact,
    Likelihood,
    RiskAssessment,
    RiskLevel,
)

_L = RiskLevel.LOW
_M = RiskLevel.MEDIUM
_H = RiskLevel.HIGH
_VH = RiskLevel.VERY_HIGH

_INHERENT_TABLE: Dict[Likelihood, Tuple[RiskLevel, ...]] = {
    Likelihood.RARE: (_L, _L, _M, _M),
    Likelihood.UNLIKELY: (_L, _M, _M, _H),
    Likelihood.POSSIBLE: (_L, _M, _H, _H),
    Likelihood.LIKELY: (_M, _H, _H, _VH),
    Likelihood.ALMOST_CERTAIN: (_M, _H, _VH, _VH),
}

_RESIDUAL_TABLE: Dict[RiskLevel, Tuple[RiskLevel, ...]] = {
    RiskLevel.LOW: (_L, _L, _L),
    RiskLevel.MEDIUM: (_M, _L, _L),
    RiskLevel.HIGH: (_H, _M, _L),
    RiskLevel.VERY_HIGH: (_VH, _H, _M),
}


def derive_inherent_risk(likelihood: Likelihood, impact: Impact) -> RiskLevel:
    return _INHERENT_TABLE[likelihood][impact.rank]


def derive_residual_risk(
    inherent_risk: RiskLevel,
    control_effectiveness: ControlEffectiveness,
) -> RiskLevel:
    return _RESIDUAL_TABLE[inherent_risk][control_effectiveness.rank]


def build_heatmap(
    assessments: Iterable[RiskAssessment],
) -> Dict[Tuple[Likelihood, Impact], int]:
    """Count assessments per likelihood x impact cell, every cell present."""
    counts: Dict[Tuple[Likelihood, Impact], int] = {
        (likelihood, impact): 0 for likelihood in Likelihood for impact in Impact
    }
    for assessment in assessments:
        counts[(assessment.likelihood, assessment.impact)] += 1
    return counts


def residual_distribution(assessments: Iterable[RiskAssessment]) -> Dict[RiskLevel, int]:
    counts: Dict[RiskLevel, int] = {level: 0 for level in RiskLevel}
    for assessment in assessments:
        counts[assessment.residual_risk] += 1
    return counts
