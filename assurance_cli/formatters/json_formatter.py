from __future__ import annotations

import json
from enum import Enum
from typing import Any

from assurance_cli.formatters.base import BaseFormatter


def _default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class JsonFormatter(BaseFormatter):
    def dumps(self, data: Any) -> str:
        return json.dumps(data, indent=2, ensure_ascii=False, default=_default) + "\n"

    def file_extension(self) -> str:
        return ".json"
