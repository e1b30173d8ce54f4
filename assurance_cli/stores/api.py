from __future__ import annotations

import asyncio
from typing import Optional

from assurance_cli.client import AssuranceClient
from assurance_cli.models.maturity import DEFAULT_MAX_LEVEL, MaturityAssessment
from assurance_cli.models.risks import RiskAssessment
from assurance_cli.parsers import (
    maturity_assessment_to_payload,
    parse_maturity_assessment,
    parse_risk_assessment,
    records,
    risk_assessment_to_payload,
)


class RiskAssessmentApiStore:
    """Loads and saves one risk assessment through the REST API.

    ``persist`` runs the blocking HTTP call on a worker thread so the event
    loop driving the edit session stays responsive.
    """

    def __init__(self, client: AssuranceClient, assessment_id: int) -> None:
        self.client = client
        self.assessment_id = assessment_id

    def load(self) -> Optional[RiskAssessment]:
        raw = self.client.get_risk_assessment(self.assessment_id)
        if not isinstance(raw, dict):
            return None
        return parse_risk_assessment(raw)

    async def persist(self, snapshot: RiskAssessment) -> Optional[RiskAssessment]:
        payload = risk_assessment_to_payload(snapshot)
        payload["id"] = self.assessment_id
        response = await asyncio.to_thread(
            self.client.update_risk_assessment, self.assessment_id, payload,
        )
        if isinstance(response, dict) and response.get("likelihood"):
            stored = parse_risk_assessment(response)
            stored.residual_risk_is_manual = snapshot.residual_risk_is_manual
            return stored
        return None


class MaturityApiStore:
    def __init__(
        self,
        client: AssuranceClient,
        control_id: str,
        max_level: int = DEFAULT_MAX_LEVEL,
    ) -> None:
        self.client = client
        self.control_id = control_id
        self.max_level = max_level

    def load(self) -> Optional[MaturityAssessment]:
        for raw in records(self.client.list_maturity_assessments(), "items"):
            if raw.get("controlId") == self.control_id:
                return parse_maturity_assessment(raw, self.max_level)
        return None

    async def persist(self, snapshot: MaturityAssessment) -> Optional[MaturityAssessment]:
        payload = maturity_assessment_to_payload(snapshot)
        await asyncio.to_thread(self.client.update_maturity, payload)
        return None

