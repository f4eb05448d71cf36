"""Button platform for GridShift."""

from __future__ import annotations

import logging

from homeassistant.components.button import ButtonEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddConfigEntryEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import DOMAIN
from .coordinator import PlanCoordinator
from .entity import gridshift_device_info

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddConfigEntryEntitiesCallback,
) -> None:
    """Set up GridShift button entities."""
    coordinator: PlanCoordinator = hass.data[DOMAIN][entry.entry_id]
    async_add_entities([GridShiftReplanButton(coordinator, entry)])


class GridShiftReplanButton(CoordinatorEntity[PlanCoordinator], ButtonEntity):
    """Button that re-plans from the cached forecast."""

    _attr_has_entity_name = True
    _attr_translation_key = "replan"

    def __init__(self, coordinator: PlanCoordinator, entry: ConfigEntry) -> None:
        """Initialize the re-plan button."""
        super().__init__(coordinator)
        self._attr_unique_id = f"{entry.entry_id}_replan"
        self._attr_device_info = gridshift_device_info(entry)

    async def async_press(self) -> None:
        """Re-plan now."""
        _LOGGER.info("Re-plan requested for %s", self.coordinator.config_entry.title)
        await self.coordinator.async_replan()
