"""Binary sensor platform for GridShift."""

from __future__ import annotations

from homeassistant.components.binary_sensor import BinarySensorEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.entity_platform import AddConfigEntryEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity
from homeassistant.util import dt as dt_util

from .const import DOMAIN
from .coordinator import PlanCoordinator
from .entity import gridshift_device_info


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddConfigEntryEntitiesCallback,
) -> None:
    """Set up GridShift binary sensor entities."""
    coordinator: PlanCoordinator = hass.data[DOMAIN][entry.entry_id]
    async_add_entities(
        [
            GridShiftCleanWindowActiveSensor(coordinator, entry),
            GridShiftRunNowSensor(coordinator, entry),
        ]
    )


class GridShiftCleanWindowActiveSensor(
    CoordinatorEntity[PlanCoordinator], BinarySensorEntity
):
    """On while the grid is inside a clean window."""

    _attr_has_entity_name = True
    _attr_translation_key = "clean_window_active"

    def __init__(self, coordinator: PlanCoordinator, entry: ConfigEntry) -> None:
        """Initialize the clean window sensor."""
        super().__init__(coordinator)
        self._attr_unique_id = f"{entry.entry_id}_clean_window_active"
        self._attr_device_info = gridshift_device_info(entry)
        self._update_from_coordinator()

    @callback
    def _handle_coordinator_update(self) -> None:
        """Handle updated data from the coordinator."""
        self._update_from_coordinator()
        self.async_write_ha_state()

    @callback
    def _update_from_coordinator(self) -> None:
        """Update state from coordinator data."""
        state = self.coordinator.data
        window = state.window_at(dt_util.utcnow()) if state else None
        self._attr_is_on = window is not None
        self._attr_extra_state_attributes = (
            {
                "window_start": window.start.isoformat(),
                "window_end": window.end.isoformat(),
            }
            if window
            else {}
        )


class GridShiftRunNowSensor(CoordinatorEntity[PlanCoordinator], BinarySensorEntity):
    """
    On while the plan's current slot is an active slot.

    This is the signal automations use to switch the charger or HVAC on.
    """

    _attr_has_entity_name = True
    _attr_translation_key = "run_now"

    def __init__(self, coordinator: PlanCoordinator, entry: ConfigEntry) -> None:
        """Initialize the run now sensor."""
        super().__init__(coordinator)
        self._attr_unique_id = f"{entry.entry_id}_run_now"
        self._attr_device_info = gridshift_device_info(entry)
        self._update_from_coordinator()

    @property
    def icon(self) -> str:
        """Return the icon."""
        return "mdi:leaf" if self.is_on else "mdi:leaf-off"

    @callback
    def _handle_coordinator_update(self) -> None:
        """Handle updated data from the coordinator."""
        self._update_from_coordinator()
        self.async_write_ha_state()

    @callback
    def _update_from_coordinator(self) -> None:
        """Update state from coordinator data."""
        state = self.coordinator.data
        if state is None:
            self._attr_is_on = False
            self._attr_extra_state_attributes = {}
            return

        now = dt_util.utcnow()
        slot = state.plan.slot_at(now)
        next_active = state.plan.next_active_slot(now)
        self._attr_is_on = slot is not None and slot.is_active
        self._attr_extra_state_attributes = {
            "action": slot.action.value if slot else None,
            "next_active_start": next_active.start.isoformat() if next_active else None,
        }
