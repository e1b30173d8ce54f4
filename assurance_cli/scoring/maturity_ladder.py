from __future__ import annotations

from typing import Dict, Iterable, List, Mapping

from assurance_cli.models.maturity import (
    ImprovementTask,
    LevelStatus,
    MaturityAssessment,
    MaturityStatus,
    MaturitySummary,
)


def derive_maturity_score(level_achievement: Mapping[int, bool], max_level: int) -> int:
    """Return the length of the unbroken run of achieved levels starting at 1.

    A level can only be credited when every level below it is achieved, so
    ``{1: True, 2: False, 3: True}`` scores 1.
    """
    score = 0
    for level in range(1, max_level + 1):
        if not level_achievement.get(level, False):
            break
        score = level
    return score


def maturity_status(score: int, max_level: int) -> MaturityStatus:
    if score >= max_level:
        return MaturityStatus.OPTIMIZED
    if 3 * score >= 2 * max_level:
        return MaturityStatus.MANAGED
    if 3 * score >= max_level:
        return MaturityStatus.DEFINED
    return MaturityStatus.INITIAL


def level_statuses(
    level_achievement: Mapping[int, bool],
    max_level: int,
) -> Dict[int, LevelStatus]:
    credited = derive_maturity_score(level_achievement, max_level)
    statuses: Dict[int, LevelStatus] = {}
    for level in range(1, max_level + 1):
        if level <= credited:
            statuses[level] = LevelStatus.ACHIEVED
        elif level_achievement.get(level, False):
            statuses[level] = LevelStatus.BLOCKED
        else:
            statuses[level] = LevelStatus.NOT_ACHIEVED
    return statuses


def summarize_maturity(assessments: Iterable[MaturityAssessment]) -> MaturitySummary:
    items = list(assessments)
    if not items:
        return MaturitySummary(overall_score=0.0, overall_target=1.0, assessed_count=0)
    total = len(items)
    return MaturitySummary(
        overall_score=sum(a.maturity_score for a in items) / total,
        overall_target=sum(a.target_level for a in items) / total,
        assessed_count=total,
    )


def improvement_plan(assessments: Iterable[MaturityAssessment]) -> List[ImprovementTask]:
    tasks: List[ImprovementTask] = []
    for assessment in assessments:
        gap = assessment.target_level - assessment.maturity_score
        if gap <= 0:
            continue
        details = assessment.notes.strip() or (
            "Review the maturity criteria and implement the necessary improvements."
        )
        tasks.append(ImprovementTask(
            control_id=assessment.control_id,
            current_level=assessment.maturity_score,
            target_level=assessment.target_level,
            gap=gap,
            priority="high" if gap > 1 else "medium",
            title=f"{assessment.control_id}: Improve to Level {assessment.target_level}",
            description=(
                f"Current Level: {assessment.maturity_score} | "
                f"Target: {assessment.target_level} | Gap: {gap} level(s)\n\n{details}"
            ),
        ))
    return tasks
