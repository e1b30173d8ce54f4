from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, Generic, Mapping, Optional, TypeVar

import yaml

from assurance_cli.exceptions import InvalidInputError, PersistenceError
from assurance_cli.formatters.yaml_formatter import YamlFormatter
from assurance_cli.models.maturity import DEFAULT_MAX_LEVEL, MaturityAssessment
from assurance_cli.models.risks import RiskAssessment
from assurance_cli.parsers import (
    maturity_assessment_to_payload,
    parse_maturity_assessment,
    parse_risk_assessment,
    risk_assessment_to_payload,
)

T = TypeVar("T")


class YamlFileStore(Generic[T]):
    """Keeps one assessment in a YAML file using the API's field names."""

    def __init__(
        self,
        path: Path,
        parse: Callable[[Mapping[str, Any]], T],
        dump: Callable[[T], Dict[str, Any]],
    ) -> None:
        self.path = path
        self._parse = parse
        self._dump = dump
        self._formatter = YamlFormatter()

    def load(self) -> Optional[T]:
        if not self.path.is_file():
            return None
        try:
            with open(self.path, encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise InvalidInputError(f"Cannot read {self.path.name}: invalid YAML.") from exc
        if raw is None:
            return None
        if not isinstance(raw, dict):
            raise InvalidInputError(f"Cannot read {self.path.name}: expected a mapping.")
        return self._parse(raw)

    async def persist(self, snapshot: T) -> Optional[T]:
        await asyncio.to_thread(self._write, self._dump(snapshot))
        return None

    def _write(self, data: Dict[str, Any]) -> None:
        try:
            self._formatter.write(data, self.path)
        except OSError as exc:
            raise PersistenceError(f"Cannot write {self.path}: {exc.strerror or exc}") from exc


def risk_file_store(path: Path) -> YamlFileStore[RiskAssessment]:
    return YamlFileStore(path, parse_risk_assessment, risk_assessment_to_payload)


def maturity_file_store(
    path: Path,
    max_level: int = DEFAULT_MAX_LEVEL,
) -> YamlFileStore[MaturityAssessment]:
    return YamlFileStore(
        path,
        lambda raw: parse_maturity_assessment(raw, max_level),
        maturity_assessment_to_payload,
    )


class AssessmentFileSource:
    """Reads risk and maturity assessments from one YAML or JSON document.

    The document holds a ``risks`` list and/or a ``maturity`` list of records
    in the API's format, so it can stand in for the client when exporting.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._document: Optional[Dict[str, Any]] = None

    def list_risk_assessments(self) -> Any:
        return self._read().get("risks", [])

    def list_maturity_assessments(self) -> Any:
        return self._read().get("maturity", [])

    def _read(self) -> Dict[str, Any]:
        if self._document is None:
            if not self.path.is_file():
                raise InvalidInputError(f"Input file not found: {self.path}")
            try:
                with open(self.path, encoding="utf-8") as f:
                    raw = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise InvalidInputError(f"Cannot read {self.path.name}: invalid YAML or JSON.") from exc
            if raw is None:
                raw = {}
            if not isinstance(raw, dict):
                raise InvalidInputError(
                    f"Cannot read {self.path.name}: expected a mapping with 'risks' and/or 'maturity'."
                )
            self._document = raw
        return self._document
