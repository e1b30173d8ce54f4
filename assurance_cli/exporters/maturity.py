from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from assurance_cli.exporters.base import BaseExporter
from assurance_cli.formatters.markdown_formatter import MarkdownFormatter
from assurance_cli.html_converter import notes_to_markdown
from assurance_cli.models.maturity import DEFAULT_MAX_LEVEL, LevelStatus, MaturityAssessment
from assurance_cli.parsers import maturity_assessment_to_payload, parse_maturity_assessment, records
from assurance_cli.scoring.maturity_ladder import (
    improvement_plan,
    level_statuses,
    maturity_status,
    summarize_maturity,
)
from assurance_cli.session.rules import MaturityAssessmentRules

_UNSAFE_STEM_RE = re.compile(r"[^a-z0-9]+")

_LEVEL_LABELS: Dict[LevelStatus, str] = {
    LevelStatus.ACHIEVED: "Achieved",
    LevelStatus.BLOCKED: "Marked achieved, blocked by a lower level",
    LevelStatus.NOT_ACHIEVED: "Not achieved",
}


class MaturityExporter(BaseExporter):
    def __init__(self, *args: Any, max_level: int = DEFAULT_MAX_LEVEL, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.max_level = max_level

    def export(self) -> None:
        self._ensure_output_dir()
        self._log("Exporting maturity assessments...")

        raw_list = records(self.source.list_maturity_assessments(), "items", "assessments")

        exported: List[Tuple[str, MaturityAssessment]] = []
        for raw in raw_list:
            assessment = parse_maturity_assessment(raw, self.max_level)
            MaturityAssessmentRules(assessment.control_id, self.max_level).adopt(assessment)
            stem = _file_stem(assessment.control_id)
            self._write_report(
                stem,
                _render_assessment(assessment),
                maturity_assessment_to_payload(assessment),
            )
            exported.append((stem, assessment))

        self._write_summary(exported)

        if exported:
            self._log(
                "Exporting maturity assessments... "
                + ", ".join(stem for stem, _ in exported)
                + f" done ({len(exported)} controls)"
            )
        else:
            self._log("Exporting maturity assessments... done (0 controls)")

    def _write_summary(self, exported: List[Tuple[str, MaturityAssessment]]) -> None:
        assessments = [a for _, a in exported]
        summary = summarize_maturity(assessments)
        frontmatter: Dict[str, Any] = {
            "generated": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "control_count": summary.assessed_count,
            "overall_score": round(summary.overall_score, 2),
            "overall_target": round(summary.overall_target, 2),
        }

        body_parts: List[str] = []
        body_parts.append(
            f"Overall maturity {summary.overall_score:.1f} of {self.max_level} "
            f"(target {summary.overall_target:.1f}) across {summary.assessed_count} controls."
        )
        body_parts.append("")
        body_parts.append(MarkdownFormatter.table(
            ["Control", "Score", "Status", "Target", "Gap"],
            [
                [
                    f"[{a.control_id}]({stem}.md)",
                    a.maturity_score,
                    maturity_status(a.maturity_score, self.max_level).value,
                    a.target_level,
                    max(0, a.target_level - a.maturity_score),
                ]
                for stem, a in exported
            ],
            right_align=(1, 3, 4),
        ))
        body_parts.append("")
        body_parts.append("## Improvement Plan")
        body_parts.append("")
        tasks = improvement_plan(assessments)
        if tasks:
            for task in tasks:
                body_parts.append(f"- **{task.title}** ({task.priority} priority, gap {task.gap})")
        else:
            body_parts.append("All assessed controls are at or above their target level.")

        md_content = MarkdownFormatter.render(
            title="Maturity Assessments",
            body="\n".join(body_parts),
            frontmatter=frontmatter,
        )

        self._write_index(md_content)


def _file_stem(control_id: str) -> str:
    return _UNSAFE_STEM_RE.sub("-", control_id.lower()).strip("-") or "control"


def _render_assessment(assessment: MaturityAssessment) -> str:
    status = maturity_status(assessment.maturity_score, assessment.max_level)
    frontmatter: Dict[str, Any] = {
        "control": assessment.control_id,
        "maturity_score": assessment.maturity_score,
        "maturity_score_is_manual": assessment.maturity_score_is_manual,
        "status": status,
        "target_level": assessment.target_level,
        "outcome": assessment.outcome,
        "evidence_quality": assessment.evidence_quality,
    }

    parts: List[str] = []
    parts.append("## Levels")
    parts.append("")
    statuses = level_statuses(assessment.level_achievement, assessment.max_level)
    rows = []
    for level, level_status in statuses.items():
        marker = " (target)" if level == assessment.target_level else ""
        rows.append([f"Level {level}{marker}", _LEVEL_LABELS[level_status]])
    parts.append(MarkdownFormatter.table(["Level", "Status"], rows))
    parts.append("")

    if assessment.maturity_score_is_manual:
        parts.append("The maturity score was set manually and is not derived from the levels.")
        parts.append("")

    for level in sorted(assessment.level_notes):
        text = notes_to_markdown(assessment.level_notes[level])
        if text:
            parts.append(f"### Level {level} Notes")
            parts.append("")
            parts.append(text)
            parts.append("")

    parts.append("## Notes")
    parts.append("")
    notes = notes_to_markdown(assessment.notes)
    parts.append(notes or "[//]: # (No notes set)")

    return MarkdownFormatter.render(
        title=f"{assessment.control_id} — {status.value} ({assessment.maturity_score}/{assessment.max_level})",
        body="\n".join(parts),
        frontmatter=frontmatter,
    )
