"""Tests for the hash-chained valuation audit trail."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from assessing.core.config import AuditConfig
from assessing.core.types import AuditEvent
from assessing.governance.audit import AuditLogger


def _make_event(**overrides) -> AuditEvent:
    defaults = {
        "actor": "recalculation",
        "action": "recalculation_completed",
        "resource": "municipality:town",
        "municipality_id": "town",
        "effective_year": 2025,
    }
    defaults.update(overrides)
    return AuditEvent(**defaults)


@pytest.fixture()
def audit_dir(tmp_path: Path) -> Path:
    d = tmp_path / "audit"
    d.mkdir()
    return d


@pytest.fixture()
def logger(audit_dir: Path) -> AuditLogger:
    return AuditLogger(config=AuditConfig(log_dir=str(audit_dir)))


class TestAuditLogger:
    def test_log_appends_jsonl(self, logger: AuditLogger) -> None:
        logger.log(_make_event(details={"processed": 3}))
        lines = logger.log_path.read_text().strip().split("\n")
        assert len(lines) == 1
        assert json.loads(lines[0])["event"]["details"] == {"processed": 3}

    def test_entries_are_chained(self, logger: AuditLogger) -> None:
        first = logger.log(_make_event(action="parcel_rollup"))
        second = logger.log(_make_event(action="recalculation_completed"))
        assert first.entry_hash != first.previous_hash
        assert second.previous_hash == first.entry_hash
        assert logger.last_hash == second.entry_hash

    def test_verify_chain(self, logger: AuditLogger) -> None:
        assert logger.verify_chain() is True
        for i in range(4):
            logger.log(_make_event(details={"batch": i}))
        assert logger.verify_chain() is True

    def test_edited_entry_breaks_chain(self, logger: AuditLogger) -> None:
        logger.log(_make_event(details={"updated": 10}))
        logger.log(_make_event(details={"updated": 20}))
        logger.log(_make_event(details={"updated": 30}))

        lines = logger.log_path.read_text().strip().split("\n")
        data = json.loads(lines[1])
        data["event"]["details"]["updated"] = 0
        lines[1] = json.dumps(data)
        logger.log_path.write_text("\n".join(lines) + "\n")

        assert logger.verify_chain() is False

    def test_query_filters(self, logger: AuditLogger) -> None:
        logger.log(_make_event(action="parcel_rollup", resource="parcel:P1"))
        logger.log(_make_event(action="recalculation_rejected", effective_year=2024))
        logger.log(_make_event(action="parcel_rollup", resource="parcel:P2", municipality_id="city"))

        assert len(logger.query()) == 3
        assert len(logger.query({"action": "parcel_rollup"})) == 2
        assert len(logger.query({"effective_year": 2024})) == 1
        assert [e.resource for e in logger.query({"municipality_id": "city"})] == ["parcel:P2"]

    def test_query_after(self, logger: AuditLogger) -> None:
        logger.log(_make_event())
        assert logger.query({"after": "2999-01-01T00:00:00"}) == []
        assert len(logger.query({"after": "2000-01-01T00:00:00"})) == 1

    def test_reopen_continues_chain(self, audit_dir: Path) -> None:
        config = AuditConfig(log_dir=str(audit_dir))
        first = AuditLogger(config=config).log(_make_event())

        reopened = AuditLogger(config=config)
        assert reopened.last_hash == first.entry_hash
        second = reopened.log(_make_event())
        assert second.previous_hash == first.entry_hash
        assert reopened.verify_chain() is True
