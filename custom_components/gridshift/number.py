"""Number platform for the GridShift planning target."""

from __future__ import annotations

import contextlib
import logging

from homeassistant.components.number import NumberEntity, NumberMode
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import PERCENTAGE, UnitOfTemperature
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.entity_platform import AddConfigEntryEntitiesCallback
from homeassistant.helpers.restore_state import RestoreEntity
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import DEVICE_TYPE_HVAC, DOMAIN
from .coordinator import PlanCoordinator
from .entity import gridshift_device_info

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddConfigEntryEntitiesCallback,
) -> None:
    """Set up GridShift number entities."""
    coordinator: PlanCoordinator = hass.data[DOMAIN][entry.entry_id]
    async_add_entities([GridShiftTargetStateNumber(coordinator, entry)])


class GridShiftTargetStateNumber(
    CoordinatorEntity[PlanCoordinator], NumberEntity, RestoreEntity
):
    """
    Target the device should reach by the deadline.

    Charge level in percent for an EV charger, room temperature for HVAC.
    The configured target is the default; a changed value persists across
    restarts via RestoreEntity.
    """

    _attr_has_entity_name = True
    _attr_translation_key = "target_state"
    _attr_mode = NumberMode.BOX

    def __init__(self, coordinator: PlanCoordinator, entry: ConfigEntry) -> None:
        """Initialize the target number entity."""
        super().__init__(coordinator)
        self._attr_unique_id = f"{entry.entry_id}_target_state"
        self._attr_device_info = gridshift_device_info(entry)
        self._attr_native_value = coordinator.target_state

        if coordinator.profile.device_type == DEVICE_TYPE_HVAC:
            self._attr_native_unit_of_measurement = UnitOfTemperature.CELSIUS
            self._attr_native_min_value = 5
            self._attr_native_max_value = 35
            self._attr_native_step = 0.5
        else:
            self._attr_native_unit_of_measurement = PERCENTAGE
            self._attr_native_min_value = 0
            self._attr_native_max_value = 100
            self._attr_native_step = 1

    async def async_added_to_hass(self) -> None:
        """Restore the previous target when the entity is added to HA."""
        await super().async_added_to_hass()

        last_state = await self.async_get_last_state()
        if last_state is None or last_state.state in ("unknown", "unavailable"):
            return

        with contextlib.suppress(ValueError, TypeError):
            restored = float(last_state.state)
            if restored != self.coordinator.target_state:
                _LOGGER.debug("Restoring plan target %s", restored)
                self._attr_native_value = restored
                await self.coordinator.async_set_target(restored)

    async def async_set_native_value(self, value: float) -> None:
        """Set a new target and re-plan."""
        self._attr_native_value = value
        self.async_write_ha_state()
        await self.coordinator.async_set_target(value)

    @callback
    def _handle_coordinator_update(self) -> None:
        """Follow target changes made through the service."""
        self._attr_native_value = self.coordinator.target_state
        self.async_write_ha_state()
