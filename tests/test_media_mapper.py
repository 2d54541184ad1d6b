"""
Unit tests for tray label <-> media-source mapping.
"""

import pytest

from modules.media_mapper import DEFAULT_SOURCE, to_device_source, to_tray_label


class TestToDeviceSource:
    """Tests for label -> media-source."""

    @pytest.mark.parametrize("label,expected", [
        ("Tray 1", "tray-1"),
        ("Tray 2", "tray-2"),
        ("Tray 3", "tray-3"),
        ("Bypass", "bypass-tray"),
        ("tray 2", "tray-2"),
        ("TRAY 3 (heavy stock)", "tray-3"),
        ("Manual Bypass", "bypass-tray"),
    ])
    def test_known_labels(self, label, expected):
        assert to_device_source(label) == expected

    @pytest.mark.parametrize("label", [None, "", "Drawer", "Tray 9", "tray-2", 42, b"Tray 1"])
    def test_unknown_labels_map_to_auto(self, label):
        assert to_device_source(label) == DEFAULT_SOURCE == "auto"

    def test_tray_one_not_shadowed(self):
        """"Tray 1" must win over the looser bypass match."""
        assert to_device_source("Tray 1 / bypass overflow") == "tray-1"


class TestToTrayLabel:
    """Tests for media-source -> label."""

    @pytest.mark.parametrize("source,expected", [
        ("tray-1", "Tray 1"),
        ("tray-2", "Tray 2"),
        ("tray-3", "Tray 3"),
        ("bypass-tray", "Bypass"),
        ("manual-bypass", "Bypass"),
        ("BYPASS", "Bypass"),
        (" tray-2 ", "Tray 2"),
    ])
    def test_known_sources(self, source, expected):
        assert to_tray_label(source) == expected

    @pytest.mark.parametrize("source", [None, "", "auto", "tray-4", "envelope", "main"])
    def test_unknown_sources(self, source):
        assert to_tray_label(source) is None


class TestRoundTrip:
    """Canonical labels survive label -> source -> label."""

    @pytest.mark.parametrize("label", ["Tray 1", "Tray 2", "Tray 3", "Bypass"])
    def test_round_trip(self, label):
        assert to_tray_label(to_device_source(label)) == label
