"""Switch platform for GridShift."""

from __future__ import annotations

from typing import Any

from homeassistant.components.switch import SwitchEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.entity_platform import AddConfigEntryEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import DOMAIN
from .coordinator import PlanCoordinator
from .entity import gridshift_device_info


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddConfigEntryEntitiesCallback,
) -> None:
    """Set up GridShift switch entities."""
    coordinator: PlanCoordinator = hass.data[DOMAIN][entry.entry_id]
    async_add_entities([GridShiftPlanningSwitch(coordinator, entry)])


class GridShiftPlanningSwitch(CoordinatorEntity[PlanCoordinator], SwitchEntity):
    """Enable or disable smart planning; off yields a single idle slot."""

    _attr_has_entity_name = True
    _attr_translation_key = "smart_planning"

    def __init__(self, coordinator: PlanCoordinator, entry: ConfigEntry) -> None:
        """Initialize the planning switch."""
        super().__init__(coordinator)
        self._attr_unique_id = f"{entry.entry_id}_smart_planning"
        self._attr_device_info = gridshift_device_info(entry)
        self._attr_is_on = coordinator.enabled

    @property
    def icon(self) -> str:
        """Return the icon."""
        return "mdi:calendar-clock" if self.is_on else "mdi:calendar-remove"

    async def async_turn_on(self, **_kwargs: Any) -> None:
        """Turn on smart planning."""
        await self.coordinator.async_set_enabled(enabled=True)
        self._attr_is_on = True
        self.async_write_ha_state()

    async def async_turn_off(self, **_kwargs: Any) -> None:
        """Turn off smart planning."""
        await self.coordinator.async_set_enabled(enabled=False)
        self._attr_is_on = False
        self.async_write_ha_state()

    @callback
    def _handle_coordinator_update(self) -> None:
        """Sync state with coordinator."""
        self._attr_is_on = self.coordinator.enabled
        self.async_write_ha_state()
