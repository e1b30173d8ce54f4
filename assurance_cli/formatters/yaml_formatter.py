from __future__ import annotations

from enum import Enum
from typing import Any

import yaml

from assurance_cli.formatters.base import BaseFormatter


class _AssessmentDumper(yaml.SafeDumper):
    """Safe dumper that writes enum members as their plain values."""


def _represent_enum(dumper: yaml.SafeDumper, value: Enum) -> yaml.Node:
    return dumper.represent_data(value.value)


_AssessmentDumper.add_multi_representer(Enum, _represent_enum)


def dump_yaml(data: Any) -> str:
    return yaml.dump(
        data,
        Dumper=_AssessmentDumper,
        default_flow_style=False,
        allow_unicode=True,
        sort_keys=False,
    )


class YamlFormatter(BaseFormatter):
    def dumps(self, data: Any) -> str:
        return dump_yaml(data)

    def file_extension(self) -> str:
        return ".yaml"
