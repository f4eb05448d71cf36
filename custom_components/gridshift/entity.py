"""Shared entity helpers for GridShift."""

from __future__ import annotations

from homeassistant.config_entries import ConfigEntry
from homeassistant.helpers.device_registry import DeviceEntryType, DeviceInfo

from .const import DOMAIN


def gridshift_device_info(entry: ConfigEntry) -> DeviceInfo:
    """Return the device all entities of a GridShift entry belong to."""
    return DeviceInfo(
        identifiers={(DOMAIN, entry.entry_id)},
        name=entry.title,
        manufacturer="GridShift",
        entry_type=DeviceEntryType.SERVICE,
    )
