from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from assurance_cli.exporters.base import BaseExporter
from assurance_cli.formatters.markdown_formatter import MarkdownFormatter
from assurance_cli.html_converter import notes_to_markdown
from assurance_cli.models.risks import Impact, Likelihood, RiskAssessment, RiskLevel
from assurance_cli.parsers import parse_risk_assessment, records, risk_assessment_to_payload
from assurance_cli.scoring.risk_matrix import (
    build_heatmap,
    derive_residual_risk,
    residual_distribution,
)
from assurance_cli.session.rules import RiskAssessmentRules

_UNSAFE_STEM_RE = re.compile(r"[^A-Za-z0-9._-]+")


class RiskAssessmentExporter(BaseExporter):
    def export(self) -> None:
        self._ensure_output_dir()
        self._log("Exporting risk assessments...")

        rules = RiskAssessmentRules()
        raw_list = records(self.source.list_risk_assessments(), "items", "riskAssessments")

        exported: List[Tuple[str, RiskAssessment]] = []
        for position, raw in enumerate(raw_list, start=1):
            assessment = rules.adopt(parse_risk_assessment(raw))
            stem = _file_stem(assessment, position)
            self._write_report(
                stem,
                _render_assessment(assessment, stem),
                risk_assessment_to_payload(assessment),
            )
            exported.append((stem, assessment))

        self._write_summary(exported)

        if exported:
            self._log(
                "Exporting risk assessments... "
                + ", ".join(stem for stem, _ in exported)
                + f" done ({len(exported)} assessments)"
            )
        else:
            self._log("Exporting risk assessments... done (0 assessments)")

    def _write_summary(self, exported: List[Tuple[str, RiskAssessment]]) -> None:
        assessments = [a for _, a in exported]
        frontmatter: Dict[str, Any] = {
            "generated": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "assessment_count": len(assessments),
            "residual_distribution": {
                level.value: count for level, count in residual_distribution(assessments).items()
            },
        }

        body_parts: List[str] = []
        noun = "assessment" if len(assessments) == 1 else "assessments"
        body_parts.append(f"{len(assessments)} risk {noun} scored.")
        body_parts.append("")
        body_parts.append("## Inherent Risk Heatmap")
        body_parts.append("")
        body_parts.append(_render_heatmap(assessments))
        body_parts.append("")
        body_parts.append("## Residual Risk Distribution")
        body_parts.append("")
        distribution = residual_distribution(assessments)
        body_parts.append(MarkdownFormatter.table(
            ["Residual Risk", "Count"],
            [[level.value, distribution[level]] for level in reversed(list(RiskLevel))],
            right_align=(1,),
        ))
        body_parts.append("")
        body_parts.append("## Assessments")
        body_parts.append("")
        for stem, a in exported:
            body_parts.append(f"### [{a.assessment_id or stem}]({stem}.md) — {a.title}")
            body_parts.append("")
            body_parts.append(f"- **Owner:** {a.risk_owner}")
            body_parts.append(f"- **Status:** {a.status.value}")
            body_parts.append(f"- **Inherent Risk:** {a.inherent_risk.value}")
            body_parts.append(f"- **Residual Risk:** {_residual_label(a)}")
            body_parts.append("")

        md_content = MarkdownFormatter.render(
            title="Risk Assessments",
            body="\n".join(body_parts),
            frontmatter=frontmatter,
        )

        self._write_index(md_content)


def _file_stem(assessment: RiskAssessment, position: int) -> str:
    if assessment.assessment_id:
        stem = _UNSAFE_STEM_RE.sub("-", assessment.assessment_id).strip("-")
        if stem:
            return stem
    if assessment.id is not None:
        return f"RA-{assessment.id}"
    return f"RA-{position}"


def _residual_label(assessment: RiskAssessment) -> str:
    if assessment.residual_risk_is_manual:
        return f"{assessment.residual_risk.value} (manual override)"
    return assessment.residual_risk.value


def _render_assessment(assessment: RiskAssessment, stem: str) -> str:
    frontmatter: Dict[str, Any] = {
        "id": assessment.assessment_id or stem,
        "title": assessment.title,
        "status": assessment.status,
        "owner": assessment.risk_owner,
        "likelihood": assessment.likelihood,
        "impact": assessment.impact,
        "inherent_risk": assessment.inherent_risk,
        "control_effectiveness": assessment.control_effectiveness,
        "residual_risk": assessment.residual_risk,
        "residual_risk_is_manual": assessment.residual_risk_is_manual,
        "target_residual_risk": assessment.target_residual_risk,
        "treatment": assessment.treatment_option,
        "priority": assessment.priority,
    }

    parts: List[str] = []
    parts.append("## Assessment & Scoring")
    parts.append("")
    parts.append(MarkdownFormatter.table(
        ["Factor", "Value"],
        [
            ["Likelihood", assessment.likelihood.value],
            ["Impact", assessment.impact.value],
            ["Inherent Risk", assessment.inherent_risk.value],
            ["Control Effectiveness", assessment.control_effectiveness.value],
            ["Residual Risk", _residual_label(assessment)],
            ["Target Residual Risk", assessment.target_residual_risk.value],
        ],
    ))
    parts.append("")

    if assessment.residual_risk_is_manual:
        calculated = derive_residual_risk(
            assessment.inherent_risk, assessment.control_effectiveness,
        )
        parts.append(f"Calculated residual risk would be {calculated.value}.")
        parts.append("")

    if assessment.residual_risk.rank <= assessment.target_residual_risk.rank:
        parts.append("Residual risk is within the target.")
    else:
        parts.append(
            f"Residual risk exceeds the target of {assessment.target_residual_risk.value}."
        )
    parts.append("")

    parts.append("## Treatment")
    parts.append("")
    parts.append(f"- **Treatment Option:** {assessment.treatment_option.value}")
    parts.append(f"- **Priority:** {assessment.priority.value}")
    parts.append("")

    parts.append("## Notes")
    parts.append("")
    notes = notes_to_markdown(assessment.notes)
    parts.append(notes or "[//]: # (No notes set)")

    title = assessment.title or "Untitled risk"
    return MarkdownFormatter.render(
        title=f"{assessment.assessment_id or stem} — {title}",
        body="\n".join(parts),
        frontmatter=frontmatter,
    )


def _render_heatmap(assessments: List[RiskAssessment]) -> str:
    counts = build_heatmap(assessments)
    rows = []
    for likelihood in reversed(list(Likelihood)):
        rows.append(
            [likelihood.value] + [counts[(likelihood, impact)] for impact in Impact]
        )
    return MarkdownFormatter.table(
        ["Likelihood \\ Impact"] + [impact.value for impact in Impact],
        rows,
        right_align=tuple(range(1, len(Impact) + 1)),
    )
