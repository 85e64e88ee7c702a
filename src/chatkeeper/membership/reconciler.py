"""Channel set diffing.

Compares the channels the session is in against the channels it should be
in, and produces the joins and leaves needed to converge.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

CHANNEL_SIGIL = "#"


@dataclass(frozen=True)
class ChannelRef:
    """A chat room, keyed by its bare name (no sigil)."""

    name: str

    @property
    def target(self) -> str:
        """Protocol-side identifier, e.g. ``#demo``."""
        return CHANNEL_SIGIL + self.name


def strip_sigil(target: str) -> str:
    """Drop a single leading ``#`` if present."""
    if target.startswith(CHANNEL_SIGIL):
        return target[len(CHANNEL_SIGIL):]
    return target


@dataclass(frozen=True)
class JoinLeaveDelta:
    """Actions needed to go from one channel set to another."""

    join: tuple[ChannelRef, ...] = field(default_factory=tuple)
    leave: tuple[ChannelRef, ...] = field(default_factory=tuple)

    @property
    def total(self) -> int:
        return len(self.join) + len(self.leave)

    def __bool__(self) -> bool:
        return self.total > 0


def _unique(channels: Iterable[ChannelRef]) -> list[ChannelRef]:
    seen: set[str] = set()
    result: list[ChannelRef] = []
    for ch in channels:
        if ch.name not in seen:
            seen.add(ch.name)
            result.append(ch)
    return result


def reconcile(
    previous: Iterable[ChannelRef], next: Iterable[ChannelRef]
) -> JoinLeaveDelta:
    """Diff two channel sequences by name.

    ``join`` keeps the order of ``next``; ``leave`` keeps the order of
    ``previous``. Repeated names collapse to their first occurrence.
    """
    prev_list = _unique(previous)
    next_list = _unique(next)
    prev_names = {ch.name for ch in prev_list}
    next_names = {ch.name for ch in next_list}

    return JoinLeaveDelta(
        join=tuple(ch for ch in next_list if ch.name not in prev_names),
        leave=tuple(ch for ch in prev_list if ch.name not in next_names),
    )
