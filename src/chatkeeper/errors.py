"""Error taxonomy.

Only configuration and connection failures are fatal. Everything else is
raised per event or per action, logged where it is caught, and dropped.
"""

from __future__ import annotations


class ChatkeeperError(Exception):
    """Base class for all chatkeeper errors."""


class ConfigurationError(ChatkeeperError):
    """Settings are missing or invalid. Fatal at startup."""


class SessionConnectionError(ChatkeeperError):
    """The chat session could not connect or was lost. Fatal, no reconnect."""


class ParseError(ChatkeeperError):
    """An inbound chat event is missing a required tag or has a bad value.

    Attributes:
        field: Name of the offending tag (e.g. "room-id").
        raw: The raw value found, or None when the tag was absent.
    """

    def __init__(self, field: str, raw: str | None, detail: str = "") -> None:
        self.field = field
        self.raw = raw
        if raw is None:
            message = f"{field} tag is missing"
        else:
            message = f"{field} tag has invalid value {raw!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class PersistenceError(ChatkeeperError):
    """The database rejected a read or write."""


class ActionError(ChatkeeperError):
    """A join/leave/capability command could not be sent."""
