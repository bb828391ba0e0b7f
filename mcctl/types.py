"""Core types shared across mcctl subsystems."""

from __future__ import annotations

import uuid
from enum import Enum


def new_id() -> str:
    return uuid.uuid4().hex[:12]


# ── Distribution channels ─────────────────────────────────────────────────────


class DistributionChannel(str, Enum):
    """Closed set of server distributions mcctl can install."""

    PAPER = "paper"
    FABRIC = "fabric"

    @classmethod
    def _missing_(cls, value: object) -> DistributionChannel | None:
        # Legacy single-letter tags and case-insensitive names
        if isinstance(value, str):
            key = value.strip().lower()
            aliases = {"a": cls.PAPER, "b": cls.FABRIC}
            if key in aliases:
                return aliases[key]
            for member in cls:
                if member.value == key:
                    return member
        return None


# ── Server lifecycle outcomes ─────────────────────────────────────────────────


class ServerStatus(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"


class StartOutcome(str, Enum):
    ALREADY_RUNNING = "already_running"
    STARTING = "starting"
    ERROR_SPAWNING = "error_spawning"


class StopOutcome(str, Enum):
    ALREADY_STOPPED = "already_stopped"
    STOPPING_GRACEFULLY = "stopping_gracefully"
    ERROR_STOPPING = "error_stopping"
    ERROR_NO_STDIN = "error_no_stdin"
