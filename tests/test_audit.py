"""Tests for the audit trail."""

import pytest

from velixar_mcp.audit import AuditLog
from velixar_mcp.dispatcher import MemoryDispatcher
from velixar_mcp.models import DeleteMemoryInput, StoreMemoryInput


class TestAuditLog:
    @pytest.mark.asyncio
    async def test_disabled_without_path(self, tmp_path):
        audit = AuditLog(None, "u")

        await audit.record("velixar_store", "ok")

        assert not audit.enabled
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_appends_entries(self, tmp_path):
        path = tmp_path / "audit.log"
        audit = AuditLog(path, "alice")

        await audit.record("velixar_store", "ok")
        await audit.record("velixar_delete", "error | gone")

        lines = path.read_text().splitlines()
        assert len(lines) == 2
        assert lines[0].endswith(" | alice | velixar_store | ok")
        assert lines[1].endswith(" | alice | velixar_delete | error | gone")

    @pytest.mark.asyncio
    async def test_write_failure_is_logged(self, tmp_path, caplog):
        audit = AuditLog(tmp_path / "missing" / "audit.log", "u")

        await audit.record("velixar_store", "ok")

        assert "Audit log write failed" in caplog.text

    @pytest.mark.asyncio
    async def test_dispatcher_records_outcomes(self, api, client, tmp_path):
        path = tmp_path / "audit.log"
        dispatcher = MemoryDispatcher(client, "test-user", AuditLog(path, "test-user"))
        api.respond("/memory", {"id": "m1"})
        api.respond("/memory/m2", {"error": "not found"})

        await dispatcher.dispatch(StoreMemoryInput(content="x"))
        await dispatcher.dispatch(DeleteMemoryInput(id="m2"))

        lines = path.read_text().splitlines()
        assert lines[0].endswith("| velixar_store | ok")
        assert lines[1].endswith("| velixar_delete | error | not found")
