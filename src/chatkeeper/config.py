"""Configuration — defaults, an optional JSON settings file, then environment.

Later sources win:
1. Built-in defaults (anonymous read-only Twitch login, local SQLite file)
2. JSON settings file (``--config``, ``CHATKEEPER_CONFIG``, or ./settings.json)
3. ``CHATKEEPER_*`` environment variables (a ``.env`` file is loaded first)
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields
from typing import Any, Mapping

import schedule
from dotenv import load_dotenv

from chatkeeper.errors import ConfigurationError
from chatkeeper.membership.executor import FLOOD_DELAY, FLOOD_FREE_ACTIONS
from chatkeeper.membership.ticker import DEFAULT_SCHEDULE, parse_interval
from chatkeeper.session.protocol import TWITCH_HOST, TWITCH_PORT

# Load .env from the working directory if present
load_dotenv()

ENV_PREFIX = "CHATKEEPER_"
DEFAULT_SETTINGS_FILE = "settings.json"

# Twitch accepts any password for justinfan* nicks (anonymous, read-only)
ANONYMOUS_LOGIN = "justinfan30316"


@dataclass
class AppConfig:
    """Full application configuration.

    Provides sensible defaults for all settings. Can be constructed from a
    dict, from a JSON file, or with no arguments (all defaults).
    """

    database_url: str = "sqlite:///chatkeeper.db"
    twitch_nick: str = ANONYMOUS_LOGIN
    twitch_user: str = ANONYMOUS_LOGIN
    twitch_pass: str = ANONYMOUS_LOGIN
    twitch_host: str = TWITCH_HOST
    twitch_port: int = TWITCH_PORT
    twitch_tls: bool = False
    web_bind: str = ""
    reconcile_schedule: str = DEFAULT_SCHEDULE
    flood_free_actions: int = FLOOD_FREE_ACTIONS
    flood_delay_ms: int = int(FLOOD_DELAY * 1000)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AppConfig:
        """Build config from a parsed dict. Unknown keys are ignored."""
        config = cls()
        config.update(data)
        return config

    @classmethod
    def from_file(cls, path: str) -> AppConfig:
        """Load config from a JSON file. Returns defaults if the file doesn't exist."""
        if not os.path.exists(path):
            return cls()

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"cannot read settings file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"settings file {path} must contain a JSON object")
        return cls.from_dict(data)

    @classmethod
    def load(cls, path: str | None = None, environ: Mapping[str, str] | None = None) -> AppConfig:
        """Load config from the standard locations.

        Checks:
        1. ``path`` argument
        2. CHATKEEPER_CONFIG env var
        3. ./settings.json
        then applies CHATKEEPER_* env vars on top.
        """
        env = os.environ if environ is None else environ
        config_path = path or env.get(ENV_PREFIX + "CONFIG") or DEFAULT_SETTINGS_FILE
        if path and not os.path.exists(path):
            raise ConfigurationError(f"settings file {path} not found")

        config = cls.from_file(config_path)
        config.update(_from_env(env))
        return config

    def update(self, data: Mapping[str, Any]) -> None:
        """Overlay values onto this config, coercing to each field's type."""
        for f in fields(self):
            if f.name in data:
                setattr(self, f.name, _coerce(f.name, data[f.name], type(getattr(self, f.name))))

    @property
    def flood_delay(self) -> float:
        """Pacing delay in seconds."""
        return self.flood_delay_ms / 1000

    def web_address(self) -> tuple[str, int] | None:
        """Parse ``web_bind`` into (host, port), or None when disabled."""
        if not self.web_bind:
            return None
        host, sep, port = self.web_bind.rpartition(":")
        if not sep or not port.isdigit():
            raise ConfigurationError(f"web_bind must be host:port, got {self.web_bind!r}")
        return host or "0.0.0.0", int(port)

    def validate(self) -> list[str]:
        """Validate the config and return a list of problems (empty = valid)."""
        problems: list[str] = []

        if not self.database_url:
            problems.append("No database_url specified")
        if not self.twitch_nick:
            problems.append("No twitch_nick specified")
        if not 0 < self.twitch_port < 65536:
            problems.append(f"twitch_port {self.twitch_port} out of range")
        if self.flood_free_actions < 0:
            problems.append("flood_free_actions must not be negative")
        if self.flood_delay_ms <= 0:
            problems.append("flood_delay_ms must be positive")

        if parse_interval(schedule.Scheduler(), self.reconcile_schedule) is None:
            problems.append(f"Invalid reconcile_schedule: {self.reconcile_schedule!r}")

        try:
            self.web_address()
        except ConfigurationError as e:
            problems.append(str(e))

        return problems


def _from_env(environ: Mapping[str, str]) -> dict[str, str]:
    values: dict[str, str] = {}
    for f in fields(AppConfig):
        key = ENV_PREFIX + f.name.upper()
        if key in environ:
            values[f.name] = environ[key]
    return values


def _coerce(name: str, value: Any, kind: type) -> Any:
    if kind is bool:
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("1", "true", "yes", "on")
    if kind is int:
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None
    return str(value)
