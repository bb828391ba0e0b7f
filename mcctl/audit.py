"""Audit Trail — append-only record of every control action.

Each start/stop request, observed server exit and install attempt is
recorded with its outcome. Entries live in memory and, when a database
path is configured, are mirrored into SQLite.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

import aiosqlite
from pydantic import BaseModel, Field

from mcctl.types import new_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEntry(BaseModel):
    """A single audit log entry."""

    id: str = Field(default_factory=new_id)
    timestamp: datetime = Field(default_factory=_utcnow)
    action: str = ""  # "start", "stop", "exit", "install"
    outcome: str = ""
    detail: str = ""
    success: bool = True
    metadata: dict[str, Any] = Field(default_factory=dict)


class AuditTrail:
    """Append-only audit log, optionally backed by SQLite."""

    def __init__(self, db_path: str | None = None) -> None:
        self._db_path = db_path
        self._entries: list[AuditEntry] = []
        self._lock = asyncio.Lock()
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open the database and create the audit table if needed."""
        if not self._db_path:
            return
        self._db = await aiosqlite.connect(self._db_path)
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS audit_log (
                id TEXT PRIMARY KEY,
                timestamp TEXT NOT NULL,
                action TEXT NOT NULL,
                outcome TEXT,
                detail TEXT,
                success INTEGER DEFAULT 1,
                metadata TEXT
            )
        """)
        await self._db.commit()

    async def record(self, entry: AuditEntry) -> None:
        """Record an audit entry (immutable append)."""
        async with self._lock:
            self._entries.append(entry)
            if self._db:
                await self._db.execute(
                    """INSERT INTO audit_log
                       (id, timestamp, action, outcome, detail, success, metadata)
                       VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    (
                        entry.id,
                        entry.timestamp.isoformat(),
                        entry.action,
                        entry.outcome,
                        entry.detail,
                        int(entry.success),
                        str(entry.metadata),
                    ),
                )
                await self._db.commit()

    async def log_action(
        self,
        action: str,
        outcome: str,
        success: bool = True,
        detail: str = "",
        **metadata: Any,
    ) -> AuditEntry:
        """Convenience: log one control action and its outcome."""
        entry = AuditEntry(
            action=action,
            outcome=outcome,
            detail=detail[:500],
            success=success,
            metadata=metadata,
        )
        await self.record(entry)
        return entry

    async def query(self, action: str = "", limit: int = 50) -> list[AuditEntry]:
        """Most recent entries first, optionally filtered by action."""
        results = self._entries
        if action:
            results = [e for e in results if e.action == action]
        results = sorted(results, key=lambda e: e.timestamp, reverse=True)
        return results[:limit]

    async def count(self) -> int:
        """Total number of audit entries."""
        return len(self._entries)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    def __repr__(self) -> str:
        return f"AuditTrail(entries={len(self._entries)})"
