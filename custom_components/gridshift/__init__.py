"""The GridShift integration."""

from __future__ import annotations

import logging

import voluptuous as vol
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import Platform
from homeassistant.core import HomeAssistant, ServiceCall, callback
from homeassistant.exceptions import ServiceValidationError
from homeassistant.helpers import config_validation as cv

from .const import CONF_CURRENT_STATE, CONF_DEADLINE, CONF_TARGET_STATE, DOMAIN
from .coordinator import PlanCoordinator

_LOGGER = logging.getLogger(__name__)

PLATFORMS: list[Platform] = [
    Platform.BINARY_SENSOR,
    Platform.BUTTON,
    Platform.NUMBER,
    Platform.SENSOR,
    Platform.SWITCH,
]

SERVICE_REPLAN = "replan"
SERVICE_SET_PLAN_TARGET = "set_plan_target"

ATTR_CONFIG_ENTRY_ID = "config_entry_id"

SERVICE_REPLAN_SCHEMA = vol.Schema(
    {
        vol.Optional(ATTR_CONFIG_ENTRY_ID): cv.string,
    }
)

SERVICE_SET_PLAN_TARGET_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_TARGET_STATE): vol.Coerce(float),
        vol.Optional(CONF_DEADLINE): cv.time,
        vol.Optional(CONF_CURRENT_STATE): vol.Coerce(float),
        vol.Optional(ATTR_CONFIG_ENTRY_ID): cv.string,
    }
)


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up GridShift from a config entry."""
    hass.data.setdefault(DOMAIN, {})

    coordinator = PlanCoordinator(hass, entry)
    await coordinator.async_config_entry_first_refresh()

    hass.data[DOMAIN][entry.entry_id] = coordinator

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    _async_register_services(hass)

    # Rebuild the coordinator when options change
    entry.async_on_unload(entry.add_update_listener(_async_update_listener))

    return True


async def _async_update_listener(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Handle config entry option updates."""
    await hass.config_entries.async_reload(entry.entry_id)


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unload_ok:
        hass.data[DOMAIN].pop(entry.entry_id)

    # Remove services when no entries remain
    if not hass.data[DOMAIN]:
        hass.services.async_remove(DOMAIN, SERVICE_REPLAN)
        hass.services.async_remove(DOMAIN, SERVICE_SET_PLAN_TARGET)

    return unload_ok


@callback
def _async_register_services(hass: HomeAssistant) -> None:
    """Register GridShift services (idempotent)."""
    if hass.services.has_service(DOMAIN, SERVICE_REPLAN):
        return

    def _get_coordinators(call: ServiceCall) -> list[PlanCoordinator]:
        """Get the targeted coordinators, all of them when none is named."""
        coordinators: dict[str, PlanCoordinator] = hass.data.get(DOMAIN, {})
        entry_id = call.data.get(ATTR_CONFIG_ENTRY_ID)
        if entry_id is None:
            return list(coordinators.values())
        if entry_id not in coordinators:
            msg = f"No GridShift entry with id {entry_id}"
            raise ServiceValidationError(msg)
        return [coordinators[entry_id]]

    async def async_handle_replan(call: ServiceCall) -> None:
        """Handle the replan service call."""
        coordinators = _get_coordinators(call)
        _LOGGER.debug("Re-planning %d GridShift entries", len(coordinators))
        for coordinator in coordinators:
            await coordinator.async_replan()

    async def async_handle_set_plan_target(call: ServiceCall) -> None:
        """Handle the set_plan_target service call."""
        for coordinator in _get_coordinators(call):
            await coordinator.async_set_target(
                call.data[CONF_TARGET_STATE],
                deadline=call.data.get(CONF_DEADLINE),
                current_state=call.data.get(CONF_CURRENT_STATE),
            )

    hass.services.async_register(
        DOMAIN,
        SERVICE_REPLAN,
        async_handle_replan,
        schema=SERVICE_REPLAN_SCHEMA,
    )

    hass.services.async_register(
        DOMAIN,
        SERVICE_SET_PLAN_TARGET,
        async_handle_set_plan_target,
        schema=SERVICE_SET_PLAN_TARGET_SCHEMA,
    )
