"""Mapping between operator tray labels and IPP media-source keywords."""

from __future__ import annotations

from typing import Optional

# Checked in order; "tray 1" must not be shadowed by a later, looser match.
_LABEL_TO_SOURCE = (
    ("tray 1", "tray-1"),
    ("tray 2", "tray-2"),
    ("tray 3", "tray-3"),
    ("bypass", "bypass-tray"),
)

_SOURCE_TO_LABEL = {
    "tray-1": "Tray 1",
    "tray-2": "Tray 2",
    "tray-3": "Tray 3",
    "bypass-tray": "Bypass",
}

DEFAULT_SOURCE = "auto"


def to_device_source(tray_label: Optional[str]) -> str:
    """
    Map a human tray label to a media-source keyword.

    Case-insensitive substring match; anything unrecognised (including
    None) maps to "auto". Never raises.
    """
    if not isinstance(tray_label, str):
        return DEFAULT_SOURCE

    label = tray_label.lower()
    for needle, source in _LABEL_TO_SOURCE:
        if needle in label:
            return source
    return DEFAULT_SOURCE


def to_tray_label(source_code: Optional[str]) -> Optional[str]:
    """
    Map a device media-source keyword back to the canonical tray label.

    Vendors spell the bypass tray differently ("bypass-tray",
    "manual-bypass"), so any source containing "bypass" is the bypass tray.
    Unknown sources return None and must be skipped by the caller.
    """
    if not isinstance(source_code, str):
        return None

    source = source_code.strip().lower()
    if source in _SOURCE_TO_LABEL:
        return _SOURCE_TO_LABEL[source]
    if "bypass" in source:
        return "Bypass"
    return None
