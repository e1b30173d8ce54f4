from __future__ import annotations

from dataclasses import dataclass

from assurance_cli.exceptions import ConfigError

DEFAULT_AUTOSAVE_DELAY = 1.2


@dataclass
class AppConfig:
    api_url: str
    bearer_token: str
    client_id: int
    autosave_delay: float = DEFAULT_AUTOSAVE_DELAY

    def __post_init__(self) -> None:
        if not self.api_url:
            raise ConfigError("API URL cannot be empty.")
        if not self.api_url.endswith("/"):
            self.api_url = self.api_url + "/"
        if not self.bearer_token:
            raise ConfigError("Bearer token cannot be empty.")
        if not isinstance(self.client_id, int) or self.client_id <= 0:
            raise ConfigError("Client ID must be a positive integer.")
        if self.autosave_delay <= 0:
            raise ConfigError("Autosave delay must be greater than zero.")
