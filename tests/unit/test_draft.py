"""Tests for core/draft.py and services/configurations.py."""

from __future__ import annotations

import httpx
import pytest

from controlmark.core.catalog import ControlCatalog
from controlmark.core.draft import build_draft, group_by_device, normalize_status, summarize_checks
from controlmark.core.errors import AuthExpired, SaveFailed, ValidationError
from controlmark.core.marking import MarkingState
from controlmark.models.configuration import Check, SavedConfiguration
from controlmark.models.marking import MarkStatus
from controlmark.services.configurations import ConfigurationService


class TestNormalizeStatus:
    def test_tri_state(self):
        assert normalize_status(MarkStatus.PASS) is True
        assert normalize_status(MarkStatus.FAIL) is False
        assert normalize_status(MarkStatus.SKIP) is None
        assert normalize_status(MarkStatus.UNSET) is None


class TestBuildDraft:
    def test_empty_name_rejected(self, catalog: ControlCatalog):
        state = MarkingState()
        state.set_status("1.1.1", MarkStatus.PASS)
        with pytest.raises(ValidationError) as exc:
            build_draft("", "team-1", "dev-1", None, catalog, state)
        assert exc.value.field == "name"

    def test_blank_name_rejected(self, catalog: ControlCatalog):
        state = MarkingState()
        state.set_status("1.1.1", MarkStatus.PASS)
        with pytest.raises(ValidationError):
            build_draft("   ", "team-1", "dev-1", None, catalog, state)

    def test_nothing_marked_rejected(self, catalog: ControlCatalog):
        with pytest.raises(ValidationError) as exc:
            build_draft("Config", "team-1", "dev-1", None, catalog, MarkingState())
        assert exc.value.field == "checks"

    def test_checks_follow_catalog_order(self, catalog: ControlCatalog):
        state = MarkingState()
        state.set_status("1.1.2", MarkStatus.FAIL)
        state.set_status("1.1.1", MarkStatus.PASS)
        draft = build_draft("Config", "team-1", "dev-1", "  first pass ", catalog, state)
        assert [c.control_id for c in draft.checks] == catalog.ids
        assert [c.status for c in draft.checks] == [True, None, False]
        assert draft.comments == "first pass"
        assert draft.name == "Config"

    def test_payload_shape(self, catalog: ControlCatalog):
        state = MarkingState()
        state.set_status("1.1.1", MarkStatus.PASS)
        payload = build_draft("Config", "", "dev-1", None, catalog, state).to_payload()
        assert payload == {
            "device_id": "dev-1",
            "name": "Config",
            "checks": [
                {"check_id": "1.1.1", "status": True},
                {"check_id": "2.1.1", "status": None},
                {"check_id": "1.1.2", "status": None},
            ],
        }


class TestSummarizeChecks:
    def test_counts_and_score(self):
        summary = summarize_checks([
            Check(control_id="A", status=True),
            Check(control_id="B", status=False),
            Check(control_id="C", status=None),
        ])
        assert (summary.passed, summary.failed, summary.skipped, summary.total) == (1, 1, 1, 3)
        assert summary.compliance_score == 33

    def test_empty(self):
        assert summarize_checks([]).compliance_score == 0


class TestGroupByDevice:
    def test_rollup(self):
        configs = [
            SavedConfiguration(save_id="1", device_id="d1", device_name="Web"),
            SavedConfiguration(save_id="2", device_id="d2", device_name="DB"),
            SavedConfiguration(save_id="3", device_id="d1", device_name="Web"),
        ]
        devices = group_by_device(configs)
        assert [d.device_id for d in devices] == ["d1", "d2"]
        assert devices[0].config_count == 2
        assert [c.save_id for c in devices[0].configurations] == ["1", "3"]


class TestSavedConfigurationFromApi:
    def test_device_name_fallbacks(self):
        config = SavedConfiguration.from_api({
            "save_id": "s1",
            "device_id": "d1",
            "device": {"device_subtype": "ubuntu"},
            "checks": [{"id": "x", "save_id": "s1", "check_id": "A", "status": True}],
            "report": {"report_id": "r1", "compliance_score": 100, "fileId": "f1"},
        })
        assert config.device_name == "ubuntu"
        assert config.checks[0].control_id == "A"
        assert config.report.file_reference == "f1"

    def test_unknown_device(self):
        assert SavedConfiguration.from_api({"save_id": "s1"}).device_name == "Unknown Device"


class TestConfigurationService:
    @pytest.fixture
    def draft(self, catalog: ControlCatalog):
        state = MarkingState()
        state.set_status("1.1.1", MarkStatus.PASS)
        return build_draft("Config", "team-1", "dev-1", None, catalog, state)

    @pytest.mark.asyncio
    async def test_submit(self, backend, config, session, draft):
        backend.add("POST", "/saved-configurations", httpx.Response(201, json={
            "save_id": "S1", "name": "Config", "device_id": "dev-1", "saved_at": "2026-10-19",
        }))
        handle = await ConfigurationService(config, session, backend.transport).submit(draft, "Web Server", True)
        assert handle.save_id == "S1"
        assert handle.device_name == "Web Server"
        assert handle.total_checks == 3
        assert handle.report_ready is True
        assert (handle.summary.passed, handle.summary.skipped, handle.summary.total) == (1, 2, 3)
        assert backend.bodies("POST", "/saved-configurations")[0]["team_id"] == "team-1"

    @pytest.mark.asyncio
    async def test_server_message_used(self, backend, config, session, draft):
        backend.add("POST", "/saved-configurations", httpx.Response(400, json={"message": "Device not found"}))
        with pytest.raises(SaveFailed) as exc:
            await ConfigurationService(config, session, backend.transport).submit(draft)
        assert exc.value.message == "Device not found"
        assert exc.value.status_code == 400
        assert exc.value.retryable is False

    @pytest.mark.asyncio
    async def test_generic_message(self, backend, config, session, draft):
        backend.add("POST", "/saved-configurations", httpx.Response(500, text="oops"))
        with pytest.raises(SaveFailed) as exc:
            await ConfigurationService(config, session, backend.transport).submit(draft)
        assert exc.value.message == "Failed to save configuration."

    @pytest.mark.asyncio
    async def test_unauthorized(self, backend, config, session, draft):
        backend.add("POST", "/saved-configurations", httpx.Response(401))
        with pytest.raises(AuthExpired):
            await ConfigurationService(config, session, backend.transport).submit(draft)

    @pytest.mark.asyncio
    async def test_network_failure_retryable(self, backend, config, session, draft):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        backend.add("POST", "/saved-configurations", refuse)
        with pytest.raises(SaveFailed) as exc:
            await ConfigurationService(config, session, backend.transport).submit(draft)
        assert exc.value.retryable is True

    @pytest.mark.asyncio
    async def test_missing_save_id(self, backend, config, session, draft):
        backend.add("POST", "/saved-configurations", httpx.Response(201, json={"name": "Config"}))
        with pytest.raises(SaveFailed, match="configuration id"):
            await ConfigurationService(config, session, backend.transport).submit(draft)

    @pytest.mark.asyncio
    async def test_list_and_delete(self, backend, config, session):
        backend.add("GET", "/saved-configurations", httpx.Response(200, json=[
            {"save_id": "S1", "device_id": "d1", "device": {"machine_name": "web-01"}, "name": "A"},
        ]))
        backend.add("DELETE", "/saved-configurations/S1", httpx.Response(204))
        service = ConfigurationService(config, session, backend.transport)
        items = await service.list_configurations()
        assert items[0].device_name == "web-01"
        await service.delete_configuration("S1")
        assert backend.requests[-1].method == "DELETE"

    @pytest.mark.asyncio
    async def test_delete_failure_message(self, backend, config, session):
        backend.add("DELETE", "/saved-configurations/S1", httpx.Response(500))
        with pytest.raises(SaveFailed) as exc:
            await ConfigurationService(config, session, backend.transport).delete_configuration("S1")
        assert exc.value.message == "Failed to delete configuration."

    @pytest.mark.asyncio
    async def test_malformed_record(self, backend, config, session):
        backend.add("GET", "/saved-configurations", httpx.Response(200, json=[{"name": "x"}]))
        with pytest.raises(SaveFailed) as exc:
            await ConfigurationService(config, session, backend.transport).list_configurations()
        assert exc.value.message == "Failed to load configurations."
