from __future__ import annotations

import configparser
from pathlib import Path

from assurance_cli.exceptions import ConfigError
from assurance_cli.models.config import DEFAULT_AUTOSAVE_DELAY, AppConfig

CONFIG_FILENAME = ".assurance-cli.ini"
_SECTION = "assurance"
_REQUIRED_KEYS = ("api_url", "bearer_token", "client_id")


def config_exists(directory: Path) -> bool:
    return (directory / CONFIG_FILENAME).is_file()


def write_config(directory: Path, config: AppConfig) -> None:
    cp = configparser.ConfigParser()
    cp[_SECTION] = {
        "api_url": config.api_url,
        "bearer_token": config.bearer_token,
        "client_id": str(config.client_id),
        "autosave_delay": str(config.autosave_delay),
    }
    path = directory / CONFIG_FILENAME
    with open(path, "w", encoding="utf-8") as f:
        cp.write(f)


def read_config(directory: Path) -> AppConfig:
    path = directory / CONFIG_FILENAME
    if not path.is_file():
        raise ConfigError(
            "Configuration not found. Run assurance-cli --init first."
        )

    cp = configparser.ConfigParser()
    try:
        cp.read(str(path), encoding="utf-8")
    except configparser.Error as exc:
        raise ConfigError(
            f"Invalid configuration format in {CONFIG_FILENAME}. "
            "Run assurance-cli --init to reconfigure."
        ) from exc

    if not cp.has_section(_SECTION):
        raise ConfigError(
            f"Invalid configuration: missing [{_SECTION}] section in {CONFIG_FILENAME}."
        )

    for key in _REQUIRED_KEYS:
        if not cp.has_option(_SECTION, key) or not cp.get(_SECTION, key).strip():
            raise ConfigError(
                f"Invalid configuration: missing or empty '{key}' in {CONFIG_FILENAME}. "
                "Run assurance-cli --init to reconfigure."
            )

    try:
        client_id = cp.getint(_SECTION, "client_id")
    except ValueError as exc:
        raise ConfigError(
            f"Invalid configuration: 'client_id' in {CONFIG_FILENAME} must be a number."
        ) from exc

    try:
        autosave_delay = cp.getfloat(_SECTION, "autosave_delay", fallback=DEFAULT_AUTOSAVE_DELAY)
    except ValueError as exc:
        raise ConfigError(
            f"Invalid configuration: 'autosave_delay' in {CONFIG_FILENAME} must be a number of seconds."
        ) from exc

    return AppConfig(
        api_url=cp.get(_SECTION, "api_url"),
        bearer_token=cp.get(_SECTION, "bearer_token"),
        client_id=client_id,
        autosave_delay=autosave_delay,
    )
