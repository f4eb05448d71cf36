"""Sensor platform for GridShift."""

from __future__ import annotations

from typing import Any

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorStateClass,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import PERCENTAGE, UnitOfMass
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.entity_platform import AddConfigEntryEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity
from homeassistant.util import dt as dt_util

from .const import DOMAIN, SOURCE_CARBON_INTENSITY, SOURCE_SYNTHETIC
from .coordinator import PlanCoordinator
from .entity import gridshift_device_info
from .models import OperationSlot, SlotAction

# Upcoming slots exposed as an attribute, to keep state attributes small
MAX_SLOT_ATTRIBUTES = 24


def _slot_to_dict(slot: OperationSlot) -> dict[str, Any]:
    """Serialize a slot for state attributes."""
    return {
        "start": slot.start.isoformat(),
        "end": slot.end.isoformat(),
        "action": slot.action.value,
        "quality": round(slot.quality_at_start, 3),
        "target_temperature": slot.target_temperature,
    }


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddConfigEntryEntitiesCallback,
) -> None:
    """Set up GridShift sensor entities."""
    coordinator: PlanCoordinator = hass.data[DOMAIN][entry.entry_id]

    async_add_entities(
        [
            GridShiftCleanFractionSensor(coordinator, entry),
            GridShiftCurrentActionSensor(coordinator, entry),
            GridShiftNextCleanWindowSensor(coordinator, entry),
            GridShiftPlanQualitySensor(coordinator, entry),
            GridShiftCostSavingsSensor(coordinator, entry),
            GridShiftCo2SavingsSensor(coordinator, entry),
            GridShiftForecastSourceSensor(coordinator, entry),
        ]
    )


class GridShiftSensor(CoordinatorEntity[PlanCoordinator], SensorEntity):
    """Base for sensors that mirror the current plan state."""

    _attr_has_entity_name = True

    def __init__(self, coordinator: PlanCoordinator, entry: ConfigEntry) -> None:
        """Initialize the sensor."""
        super().__init__(coordinator)
        self._attr_unique_id = f"{entry.entry_id}_{self._attr_translation_key}"
        self._attr_device_info = gridshift_device_info(entry)
        self._update_from_coordinator()

    @callback
    def _handle_coordinator_update(self) -> None:
        """Handle updated data from the coordinator."""
        self._update_from_coordinator()
        self.async_write_ha_state()

    @callback
    def _update_from_coordinator(self) -> None:
        """Update sensor state from coordinator data."""
        raise NotImplementedError


class GridShiftCleanFractionSensor(GridShiftSensor):
    """Clean-energy share of the grid right now."""

    _attr_translation_key = "current_clean_fraction"
    _attr_native_unit_of_measurement = PERCENTAGE
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_suggested_display_precision = 0

    @callback
    def _update_from_coordinator(self) -> None:
        state = self.coordinator.data
        sample = state.sample_at(dt_util.utcnow()) if state else None
        if sample is None:
            self._attr_native_value = None
            self._attr_extra_state_attributes = {}
            return

        self._attr_native_value = round(sample.clean_fraction * 100, 1)
        self._attr_extra_state_attributes = {
            "sample_start": sample.timestamp.isoformat(),
            "price_tier": sample.price_tier.value if sample.price_tier else None,
            "rate_per_kwh": sample.rate_per_kwh,
        }


class GridShiftCurrentActionSensor(GridShiftSensor):
    """What the device should be doing right now."""

    _attr_translation_key = "current_action"
    _attr_device_class = SensorDeviceClass.ENUM
    _attr_options = [action.value for action in SlotAction]

    @callback
    def _update_from_coordinator(self) -> None:
        state = self.coordinator.data
        if state is None:
            self._attr_native_value = None
            self._attr_extra_state_attributes = {}
            return

        now = dt_util.utcnow()
        plan = state.plan
        slot = plan.slot_at(now)
        upcoming = [s for s in plan.slots if s.end > now][:MAX_SLOT_ATTRIBUTES]

        self._attr_native_value = slot.action.value if slot else None
        self._attr_extra_state_attributes = {
            "slot_start": slot.start.isoformat() if slot else None,
            "slot_end": slot.end.isoformat() if slot else None,
            "target_temperature": slot.target_temperature if slot else None,
            "deadline": plan.deadline.isoformat(),
            "target_state": plan.target_state,
            "current_state": plan.current_state,
            "planning_enabled": state.enabled,
            "slots": [_slot_to_dict(s) for s in upcoming],
        }


class GridShiftNextCleanWindowSensor(GridShiftSensor):
    """Start of the current or next clean window."""

    _attr_translation_key = "next_clean_window"
    _attr_device_class = SensorDeviceClass.TIMESTAMP

    @callback
    def _update_from_coordinator(self) -> None:
        state = self.coordinator.data
        window = state.next_window(dt_util.utcnow()) if state else None
        if window is None:
            self._attr_native_value = None
            self._attr_extra_state_attributes = {}
            return

        self._attr_native_value = window.start
        self._attr_extra_state_attributes = {
            "end": window.end.isoformat(),
            "duration_minutes": int(window.duration.total_seconds() // 60),
            "average_clean_fraction": round(window.average_clean_fraction, 3),
            "window_count": len(state.windows),
        }


class GridShiftPlanQualitySensor(GridShiftSensor):
    """Quality of the energy the plan uses, 0-100."""

    _attr_translation_key = "plan_quality"
    _attr_native_unit_of_measurement = PERCENTAGE
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_suggested_display_precision = 0

    @callback
    def _update_from_coordinator(self) -> None:
        state = self.coordinator.data
        if state is None:
            self._attr_native_value = None
            self._attr_extra_state_attributes = {}
            return
        self._attr_native_value = round(state.plan.estimated_quality_score, 1)
        self._attr_extra_state_attributes = {
            "comfort_score": round(state.plan.summary.estimated_comfort_score, 1),
        }


class GridShiftCostSavingsSensor(GridShiftSensor):
    """Estimated money saved by following the plan."""

    _attr_translation_key = "estimated_cost_savings"
    _attr_device_class = SensorDeviceClass.MONETARY
    _attr_suggested_display_precision = 2

    def __init__(self, coordinator: PlanCoordinator, entry: ConfigEntry) -> None:
        """Initialize the savings sensor."""
        self._attr_native_unit_of_measurement = coordinator.hass.config.currency
        super().__init__(coordinator, entry)

    @callback
    def _update_from_coordinator(self) -> None:
        state = self.coordinator.data
        if state is None:
            self._attr_native_value = None
            self._attr_extra_state_attributes = {}
            return

        summary = state.plan.summary
        self._attr_native_value = round(summary.estimated_savings_cost, 2)
        self._attr_extra_state_attributes = {
            "estimated_energy_kwh": round(summary.estimated_energy_kwh, 2),
            "estimated_points": summary.estimated_points,
        }


class GridShiftCo2SavingsSensor(GridShiftSensor):
    """Estimated CO2 avoided by following the plan."""

    _attr_translation_key = "estimated_co2_savings"
    _attr_device_class = SensorDeviceClass.WEIGHT
    _attr_native_unit_of_measurement = UnitOfMass.KILOGRAMS
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_suggested_display_precision = 2

    @callback
    def _update_from_coordinator(self) -> None:
        state = self.coordinator.data
        if state is None:
            self._attr_native_value = None
            return
        self._attr_native_value = round(state.plan.estimated_savings_co2_kg, 3)


class GridShiftForecastSourceSensor(GridShiftSensor):
    """Which source the current forecast came from."""

    _attr_translation_key = "forecast_source"
    _attr_device_class = SensorDeviceClass.ENUM
    _attr_options = [SOURCE_CARBON_INTENSITY, SOURCE_SYNTHETIC]

    @callback
    def _update_from_coordinator(self) -> None:
        state = self.coordinator.data
        if state is None:
            self._attr_native_value = None
            self._attr_extra_state_attributes = {}
            return

        self._attr_native_value = state.source
        self._attr_extra_state_attributes = {
            "generated_at": state.generated_at.isoformat(),
            "sample_count": len(state.forecast),
            "last_error": self.coordinator.forecast_error,
        }
