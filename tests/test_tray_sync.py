"""
Unit tests for the Tray Synchronizer.
"""

import time
from unittest.mock import MagicMock

import pytest

from core.exceptions import PersistenceError, TransportError, TransportTimeout
from models.tray import MediaDescriptor
from services.tray_sync_service import TraySyncService


# Fixtures

@pytest.fixture
def device():
    device = MagicMock()
    device.query_ready_media.return_value = []
    return device


@pytest.fixture
def sync(device, tray_store):
    return TraySyncService(device, tray_store, sync_interval_seconds=0.05, initial_delay_seconds=0.0)


class TestRunOnce:
    """Tests for a single sync tick."""

    def test_tray_one_plain_80(self, sync, device, tray_store, make_tray):
        make_tray("Tray 1", paper_type="Glossy", paper_weight_gsm=200, sheets_loaded=321)
        device.query_ready_media.return_value = [
            MediaDescriptor(media_source="tray-1", media_type="plain", media_weight_metric=80),
        ]

        result = sync.run_once()

        assert result.updated == ["Tray 1"]
        tray = tray_store.get_by_name("Tray 1")
        assert tray.paper_type == "plain"
        assert tray.paper_weight_gsm == 80
        assert tray.media_source_code == "tray-1"
        assert tray.sheets_loaded == 321

    def test_unmapped_sources_ignored(self, sync, device, tray_store, make_tray):
        make_tray("Tray 1")
        device.query_ready_media.return_value = [
            MediaDescriptor(media_source="envelope-feeder", media_type="envelope"),
            MediaDescriptor(media_source="tray-1", media_type="letterhead"),
        ]

        result = sync.run_once()

        assert result.skipped == ["envelope-feeder"]
        assert result.updated == ["Tray 1"]
        assert tray_store.get_by_name("Tray 1").paper_type == "letterhead"

    def test_bypass_variant(self, sync, device, tray_store, make_tray):
        make_tray("Bypass")
        device.query_ready_media.return_value = [
            MediaDescriptor(media_source="manual-bypass", media_type="labels", media_weight_metric=120),
        ]

        sync.run_once()

        tray = tray_store.get_by_name("Bypass")
        assert tray.paper_type == "labels"
        assert tray.media_source_code == "manual-bypass"

    def test_missing_media_type_falls_back_to_plain(self, sync, device, tray_store, make_tray):
        make_tray("Tray 2", paper_type="Coated", paper_weight_gsm=170)
        device.query_ready_media.return_value = [MediaDescriptor(media_source="tray-2")]

        sync.run_once()

        tray = tray_store.get_by_name("Tray 2")
        assert tray.paper_type == "Plain"
        # An unreported weight never clears the known one
        assert tray.paper_weight_gsm == 170

    def test_tray_without_row(self, sync, device):
        device.query_ready_media.return_value = [MediaDescriptor(media_source="tray-3")]

        result = sync.run_once()

        assert result.missing == ["Tray 3"]
        assert result.updated == []
        assert result.ok

    @pytest.mark.parametrize("error", [
        TransportTimeout("Get-Printer-Attributes", 30.0),
        TransportError("Get-Printer-Attributes", "connection refused"),
    ])
    def test_device_unreachable_skips_tick(self, sync, device, tray_store, make_tray, error):
        make_tray("Tray 1", paper_type="Coated")
        device.query_ready_media.side_effect = error

        result = sync.run_once()

        assert not result.ok
        assert result.error == error.to_error_message()
        assert tray_store.get_by_name("Tray 1").paper_type == "Coated"
        assert sync.last_result is result

    def test_store_failure_for_one_tray(self, device):
        trays = MagicMock()
        trays.update_media.side_effect = [PersistenceError("transaction", "disk full"), True]
        device.query_ready_media.return_value = [
            MediaDescriptor(media_source="tray-1"),
            MediaDescriptor(media_source="tray-2"),
        ]
        sync = TraySyncService(device, trays)

        result = sync.run_once()

        assert result.updated == ["Tray 2"]
        assert len(result.failures) == 1
        assert result.failures[0].startswith("Tray 1")

    def test_force_sync(self, sync, device):
        result = sync.force_sync()

        device.query_ready_media.assert_called_once()
        assert result.ok

    def test_result_to_dict(self, sync):
        data = sync.run_once().to_dict()

        assert set(data) == {"synced_at", "updated", "skipped", "missing", "failures", "error"}


class TestSyncLoop:
    """Tests for the background thread."""

    def test_loop_runs_and_stops(self, sync, device):
        sync.start()
        try:
            assert sync._thread.name == "TraySync"
            deadline = time.monotonic() + 5
            while device.query_ready_media.call_count < 2 and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            sync.stop()

        assert device.query_ready_media.call_count >= 2
        assert not sync.is_running

    def test_initial_delay(self, device, tray_store):
        sync = TraySyncService(device, tray_store, initial_delay_seconds=10.0)

        sync.start()
        time.sleep(0.05)
        sync.stop()

        device.query_ready_media.assert_not_called()

    def test_loop_survives_device_errors(self, device, tray_store):
        device.query_ready_media.side_effect = TransportError("Get-Printer-Attributes", "down")
        sync = TraySyncService(device, tray_store, sync_interval_seconds=0.01, initial_delay_seconds=0.0)

        sync.start()
        try:
            deadline = time.monotonic() + 5
            while device.query_ready_media.call_count < 3 and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            sync.stop()

        assert device.query_ready_media.call_count >= 3
        assert sync._consecutive_failures >= 3
