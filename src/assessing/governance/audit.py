"""Hash-chained audit trail for valuation runs.

Every recalculation job, parcel rollup and rejected write is appended to a
JSONL file. Each line's hash covers the previous line's hash, so editing any
entry breaks verification for everything after it.
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from assessing.core.config import AuditConfig
from assessing.core.types import AuditEvent


class AuditEntry:
    """An AuditEvent plus its position in the hash chain."""

    def __init__(self, event: AuditEvent, previous_hash: str, entry_hash: str) -> None:
        self.event = event
        self.previous_hash = previous_hash
        self.entry_hash = entry_hash

    def to_dict(self) -> dict[str, Any]:
        return {
            "previous_hash": self.previous_hash,
            "entry_hash": self.entry_hash,
            "event": json.loads(self.event.model_dump_json()),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuditEntry:
        return cls(
            event=AuditEvent(**data["event"]),
            previous_hash=data["previous_hash"],
            entry_hash=data["entry_hash"],
        )


class AuditLogger:
    """Append-only, hash-chained audit logger.

    Args:
        config: AuditConfig instance. Defaults to AuditConfig() which reads
            from environment variables.
        log_file: Override the log file name (default: ``valuation_audit.jsonl``).
    """

    def __init__(
        self,
        config: AuditConfig | None = None,
        log_file: str = "valuation_audit.jsonl",
    ) -> None:
        self._config = config or AuditConfig()
        self._algorithm = self._config.hash_algorithm
        self._log_dir = Path(self._config.log_dir)
        self._log_dir.mkdir(parents=True, exist_ok=True)
        self._log_path = self._log_dir / log_file
        self._last_hash = self._genesis_hash()

        if self._log_path.exists():
            for entry in self._read_entries():
                self._last_hash = entry.entry_hash

    def _genesis_hash(self) -> str:
        return hashlib.new(self._algorithm, b"assessing-genesis").hexdigest()

    def _hash(self, previous_hash: str, event_json: str) -> str:
        return hashlib.new(self._algorithm, (previous_hash + event_json).encode("utf-8")).hexdigest()

    def _read_entries(self) -> list[AuditEntry]:
        entries: list[AuditEntry] = []
        with open(self._log_path) as fh:
            for line in fh:
                stripped = line.strip()
                if stripped:
                    entries.append(AuditEntry.from_dict(json.loads(stripped)))
        return entries

    def log(self, event: AuditEvent) -> AuditEntry:
        """Append ``event`` to the chain and return the written entry."""
        entry = AuditEntry(
            event=event,
            previous_hash=self._last_hash,
            entry_hash=self._hash(self._last_hash, event.model_dump_json()),
        )
        with open(self._log_path, "a") as fh:
            fh.write(json.dumps(entry.to_dict()) + "\n")
        self._last_hash = entry.entry_hash
        return entry

    def verify_chain(self) -> bool:
        """Recompute every hash; False if any entry was altered."""
        if not self._log_path.exists():
            return True

        previous_hash = self._genesis_hash()
        for entry in self._read_entries():
            if entry.previous_hash != previous_hash:
                return False
            if entry.entry_hash != self._hash(previous_hash, entry.event.model_dump_json()):
                return False
            previous_hash = entry.entry_hash
        return True

    def query(self, filters: dict[str, Any] | None = None) -> list[AuditEvent]:
        """Return events matching every given filter.

        Supported keys: ``actor``, ``action``, ``resource``, ``municipality_id``,
        ``effective_year`` (exact match) and ``after`` (ISO datetime).
        """
        filters = filters or {}
        if not self._log_path.exists():
            return []

        after_dt = None
        if "after" in filters:
            after_dt = datetime.fromisoformat(filters["after"])
            if after_dt.tzinfo is None:
                after_dt = after_dt.replace(tzinfo=timezone.utc)

        exact = ("actor", "action", "resource", "municipality_id", "effective_year")
        results: list[AuditEvent] = []
        for entry in self._read_entries():
            event = entry.event
            if any(key in filters and getattr(event, key) != filters[key] for key in exact):
                continue
            if after_dt and event.timestamp <= after_dt:
                continue
            results.append(event)
        return results

    @property
    def log_path(self) -> Path:
        return self._log_path

    @property
    def last_hash(self) -> str:
        return self._last_hash
