from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
from pathlib import Path
from typing import Any, List, Optional, Tuple

from assurance_cli.client import AssuranceClient
from assurance_cli.config import CONFIG_FILENAME, config_exists, read_config, write_config
from assurance_cli.exceptions import ConfigError, InvalidInputError
from assurance_cli.exporters.base import BaseExporter
from assurance_cli.exporters.maturity import MaturityExporter
from assurance_cli.exporters.risks import RiskAssessmentExporter
from assurance_cli.models.config import DEFAULT_AUTOSAVE_DELAY, AppConfig
from assurance_cli.models.maturity import DEFAULT_MAX_LEVEL
from assurance_cli.session.coordinator import EditSessionCoordinator, SessionState
from assurance_cli.session.rules import (
    AssessmentRules,
    MaturityAssessmentRules,
    RiskAssessmentRules,
)
from assurance_cli.stores.file import (
    AssessmentFileSource,
    YamlFileStore,
    maturity_file_store,
    risk_file_store,
)

_SUBDIRS = ("risks", "maturity")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="assurance-cli",
        description="Score risk and maturity assessments and export reports.",
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--init",
        metavar="API_URL",
        help="Initialize configuration with the assurance API URL.",
    )
    group.add_argument("--copy-all", action="store_true", help="Export all assessments.")
    group.add_argument("--copy-risks", action="store_true", help="Export risk assessments.")
    group.add_argument(
        "--copy-maturity", action="store_true", help="Export Essential Eight maturity assessments.",
    )
    group.add_argument(
        "--edit",
        metavar="FILE",
        help="Edit one assessment stored in a YAML file.",
    )
    parser.add_argument(
        "--input", metavar="FILE",
        help="Read assessments from a YAML or JSON file instead of the API.",
    )
    parser.add_argument(
        "--force", action="store_true",
        help="Overwrite existing files without confirmation.",
    )
    parser.add_argument(
        "--keep-raw-json", action="store_true",
        help="Also write raw JSON files alongside Markdown.",
    )
    parser.add_argument(
        "--kind", choices=("risk", "maturity"), default="risk",
        help="Kind of assessment edited with --edit (default: risk).",
    )
    parser.add_argument(
        "--set", dest="set_fields", action="append", default=[], metavar="FIELD=VALUE",
        help="Set a field of the edited assessment. May be repeated.",
    )
    parser.add_argument(
        "--level", dest="levels", action="append", default=[], metavar="LEVEL=ACHIEVED",
        help="Mark a maturity level as achieved or not. May be repeated.",
    )
    parser.add_argument(
        "--manual", action="append", default=[], metavar="FIELD",
        help="Pin a derived field at its current value.",
    )
    parser.add_argument(
        "--auto", action="append", default=[], metavar="FIELD",
        help="Clear the manual override of a derived field.",
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Show debug logging.",
    )
    return parser


def _run_init(api_url: str) -> None:
    if not api_url.startswith("https://"):
        raise ConfigError("API URL must start with https://")

    bearer_token = getpass.getpass("Enter your bearer token: ")
    if not bearer_token.strip():
        raise ConfigError("Bearer token cannot be empty.")

    client_id = input("Enter your client ID (the number shown in the client URL, e.g. '42'): ")
    if not client_id.strip():
        raise ConfigError("Client ID cannot be empty.")
    if not client_id.strip().isdigit():
        raise ConfigError("Client ID must be a number.")

    config = AppConfig(
        api_url=api_url,
        bearer_token=bearer_token.strip(),
        client_id=int(client_id.strip()),
    )

    cwd = Path.cwd()
    write_config(cwd, config)

    for subdir in _SUBDIRS:
        (cwd / subdir).mkdir(exist_ok=True)

    print(f"Configuration saved to {CONFIG_FILENAME}")
    print("Created directories: " + ", ".join(f"{d}/" for d in _SUBDIRS))


def _run_export(args: argparse.Namespace) -> None:
    cwd = Path.cwd()
    source: Any
    if args.input:
        source = AssessmentFileSource(Path(args.input))
    else:
        source = AssuranceClient(read_config(cwd))

    export_kwargs = {
        "force": args.force,
        "keep_raw_json": args.keep_raw_json,
    }

    exporters: List[BaseExporter] = []
    if args.copy_all or args.copy_risks:
        exporters.append(RiskAssessmentExporter(source, cwd / "risks", **export_kwargs))
    if args.copy_all or args.copy_maturity:
        exporters.append(MaturityExporter(source, cwd / "maturity", **export_kwargs))

    for exporter in exporters:
        exporter.export()


def _split_assignment(text: str, flag: str) -> Tuple[str, str]:
    name, sep, value = text.partition("=")
    if not sep or not name.strip():
        raise InvalidInputError(f"Invalid {flag} argument {text!r}. Expected NAME=VALUE.")
    return name.strip(), value.strip()


def _autosave_delay(directory: Path) -> float:
    if config_exists(directory):
        return read_config(directory).autosave_delay
    return DEFAULT_AUTOSAVE_DELAY


async def _edit_session(
    rules: AssessmentRules[Any],
    store: YamlFileStore[Any],
    args: argparse.Namespace,
    delay: float,
) -> Tuple[SessionState, Any]:
    session: EditSessionCoordinator[Any] = EditSessionCoordinator(
        rules, store.persist, store.load, debounce_delay=delay,
    )
    try:
        for text in args.set_fields:
            session.update_field(*_split_assignment(text, "--set"))
        for text in args.levels:
            session.set_level_achievement(*_split_assignment(text, "--level"))
        for field_name in args.manual:
            session.set_manual_override(field_name, True)
        for field_name in args.auto:
            session.set_manual_override(field_name, False)
        state = await session.submit()
    finally:
        session.close()
    return state, session.get_last_persisted()


def _run_edit(args: argparse.Namespace) -> None:
    if args.levels and args.kind != "maturity":
        raise InvalidInputError("--level can only be used with --kind maturity.")

    path = Path(args.edit)
    rules: AssessmentRules[Any]
    store: YamlFileStore[Any]
    if args.kind == "maturity":
        rules = MaturityAssessmentRules(control_id=path.stem, max_level=DEFAULT_MAX_LEVEL)
        store = maturity_file_store(path, DEFAULT_MAX_LEVEL)
    else:
        rules = RiskAssessmentRules()
        store = risk_file_store(path)

    state, persisted = asyncio.run(
        _edit_session(rules, store, args, _autosave_delay(Path.cwd()))
    )
    if state.last_error is not None:
        raise state.last_error
    if state.version == 0:
        print(f"No changes to save in {path}")
        return

    print(f"Saved {rules.describe(persisted)} to {path}")
    summary = _edit_summary(persisted)
    if summary:
        print(summary)


def _edit_summary(entity: Any) -> Optional[str]:
    if hasattr(entity, "residual_risk"):
        manual = " (manual)" if entity.residual_risk_is_manual else ""
        return (
            f"Inherent risk: {entity.inherent_risk.value}, "
            f"residual risk: {entity.residual_risk.value}{manual}"
        )
    if hasattr(entity, "maturity_score"):
        manual = " (manual)" if entity.maturity_score_is_manual else ""
        return f"Maturity score: {entity.maturity_score}/{entity.max_level}{manual}"
    return None


def main(argv: Optional[List[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if args.init:
        _run_init(args.init)
    elif args.copy_all or args.copy_risks or args.copy_maturity:
        _run_export(args)
    elif args.edit:
        _run_edit(args)
    else:
        parser.print_help()
