"""Config flow for the GridShift integration."""

from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol
from homeassistant.config_entries import (
    ConfigEntry,
    ConfigFlow,
    ConfigFlowResult,
    OptionsFlow,
)
from homeassistant.core import callback
from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.helpers.selector import (
    EntitySelector,
    EntitySelectorConfig,
    NumberSelector,
    NumberSelectorConfig,
    NumberSelectorMode,
    SelectSelector,
    SelectSelectorConfig,
    SelectSelectorMode,
    TextSelector,
    TimeSelector,
)

from .carbon_intensity_api import (
    CarbonIntensityApiError,
    CarbonIntensityClient,
    CarbonIntensityPostcodeError,
)
from .const import (
    CONF_AWAY_TEMPERATURE,
    CONF_CLEAN_FLOOR,
    CONF_COMFORT_MAX,
    CONF_COMFORT_MIN,
    CONF_CURRENT_STATE,
    CONF_DEADLINE,
    CONF_DEVICE_TYPE,
    CONF_MIN_CLEAN_FRACTION,
    CONF_MIN_WINDOW_MINUTES,
    CONF_OFF_SCORE_THRESHOLD,
    CONF_POSTCODE,
    CONF_QUALIFYING_MODE,
    CONF_SCORE_THRESHOLD,
    CONF_STATE_ENTITY,
    CONF_TARGET_STATE,
    DEFAULT_AWAY_TEMPERATURE,
    DEFAULT_CLEAN_FLOOR,
    DEFAULT_COMFORT_MAX,
    DEFAULT_COMFORT_MIN,
    DEFAULT_DEADLINE,
    DEFAULT_EV_CURRENT_STATE,
    DEFAULT_EV_MIN_WINDOW_MINUTES,
    DEFAULT_EV_TARGET_STATE,
    DEFAULT_HVAC_CURRENT_STATE,
    DEFAULT_HVAC_MIN_WINDOW_MINUTES,
    DEFAULT_HVAC_TARGET_STATE,
    DEFAULT_MIN_CLEAN_FRACTION,
    DEFAULT_OFF_SCORE_THRESHOLD,
    DEFAULT_SCORE_THRESHOLD,
    DEVICE_TYPE_EV_CHARGER,
    DEVICE_TYPE_HVAC,
    DEVICE_TYPES,
    DOMAIN,
    QUALIFYING_MODE_SCORE,
    QUALIFYING_MODES,
)

_LOGGER = logging.getLogger(__name__)

DEVICE_TITLES = {
    DEVICE_TYPE_EV_CHARGER: "EV charger",
    DEVICE_TYPE_HVAC: "HVAC",
}

STEP_USER_DATA_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_DEVICE_TYPE): SelectSelector(
            SelectSelectorConfig(
                options=DEVICE_TYPES,
                mode=SelectSelectorMode.LIST,
                translation_key=CONF_DEVICE_TYPE,
            )
        ),
        vol.Optional(CONF_POSTCODE): TextSelector(),
    }
)


def _fraction_selector() -> NumberSelector:
    return NumberSelector(
        NumberSelectorConfig(min=0, max=1, step=0.05, mode=NumberSelectorMode.SLIDER)
    )


def _temperature_selector(low: float, high: float) -> NumberSelector:
    return NumberSelector(
        NumberSelectorConfig(
            min=low,
            max=high,
            step=0.5,
            unit_of_measurement="°C",
            mode=NumberSelectorMode.SLIDER,
        )
    )


def _settings_schema(device_type: str, defaults: dict[str, Any]) -> vol.Schema:
    """Build the planning settings schema for a device type."""
    is_hvac = device_type == DEVICE_TYPE_HVAC
    state_unit = "°C" if is_hvac else "%"
    state_config = NumberSelectorConfig(
        min=5 if is_hvac else 0,
        max=35 if is_hvac else 100,
        step=0.5 if is_hvac else 1,
        unit_of_measurement=state_unit,
        mode=NumberSelectorMode.BOX,
    )

    fields: dict[Any, Any] = {
        vol.Required(
            CONF_DEADLINE, default=defaults.get(CONF_DEADLINE, DEFAULT_DEADLINE)
        ): TimeSelector(),
        vol.Required(
            CONF_TARGET_STATE,
            default=defaults.get(
                CONF_TARGET_STATE,
                DEFAULT_HVAC_TARGET_STATE if is_hvac else DEFAULT_EV_TARGET_STATE,
            ),
        ): NumberSelector(state_config),
        vol.Required(
            CONF_CURRENT_STATE,
            default=defaults.get(
                CONF_CURRENT_STATE,
                DEFAULT_HVAC_CURRENT_STATE if is_hvac else DEFAULT_EV_CURRENT_STATE,
            ),
        ): NumberSelector(state_config),
    }

    # vol.Optional with a None default would render as an empty selection
    state_entity = defaults.get(CONF_STATE_ENTITY)
    state_key = (
        vol.Optional(CONF_STATE_ENTITY, default=state_entity)
        if state_entity
        else vol.Optional(CONF_STATE_ENTITY)
    )
    fields[state_key] = EntitySelector(
        EntitySelectorConfig(
            domain=["sensor", "climate", "number", "input_number"]
        )
    )

    if is_hvac:
        fields.update(
            {
                vol.Required(
                    CONF_QUALIFYING_MODE,
                    default=defaults.get(CONF_QUALIFYING_MODE, QUALIFYING_MODE_SCORE),
                ): SelectSelector(
                    SelectSelectorConfig(
                        options=QUALIFYING_MODES,
                        mode=SelectSelectorMode.DROPDOWN,
                        translation_key=CONF_QUALIFYING_MODE,
                    )
                ),
                vol.Required(
                    CONF_SCORE_THRESHOLD,
                    default=defaults.get(CONF_SCORE_THRESHOLD, DEFAULT_SCORE_THRESHOLD),
                ): _fraction_selector(),
                vol.Required(
                    CONF_CLEAN_FLOOR,
                    default=defaults.get(CONF_CLEAN_FLOOR, DEFAULT_CLEAN_FLOOR),
                ): _fraction_selector(),
                vol.Required(
                    CONF_COMFORT_MIN,
                    default=defaults.get(CONF_COMFORT_MIN, DEFAULT_COMFORT_MIN),
                ): _temperature_selector(16, 24),
                vol.Required(
                    CONF_COMFORT_MAX,
                    default=defaults.get(CONF_COMFORT_MAX, DEFAULT_COMFORT_MAX),
                ): _temperature_selector(22, 32),
                vol.Required(
                    CONF_AWAY_TEMPERATURE,
                    default=defaults.get(
                        CONF_AWAY_TEMPERATURE, DEFAULT_AWAY_TEMPERATURE
                    ),
                ): _temperature_selector(5, 20),
                vol.Required(
                    CONF_OFF_SCORE_THRESHOLD,
                    default=defaults.get(
                        CONF_OFF_SCORE_THRESHOLD, DEFAULT_OFF_SCORE_THRESHOLD
                    ),
                ): _fraction_selector(),
            }
        )
    else:
        fields[
            vol.Required(
                CONF_MIN_CLEAN_FRACTION,
                default=defaults.get(
                    CONF_MIN_CLEAN_FRACTION, DEFAULT_MIN_CLEAN_FRACTION
                ),
            )
        ] = _fraction_selector()

    fields[
        vol.Required(
            CONF_MIN_WINDOW_MINUTES,
            default=defaults.get(
                CONF_MIN_WINDOW_MINUTES,
                DEFAULT_HVAC_MIN_WINDOW_MINUTES
                if is_hvac
                else DEFAULT_EV_MIN_WINDOW_MINUTES,
            ),
        )
    ] = NumberSelector(
        NumberSelectorConfig(
            min=0,
            max=720,
            step=15,
            unit_of_measurement="min",
            mode=NumberSelectorMode.BOX,
        )
    )

    return vol.Schema(fields)


def _validate_settings(settings: dict[str, Any]) -> dict[str, str]:
    """Return form errors for inconsistent planning settings."""
    errors: dict[str, str] = {}
    comfort_min = settings.get(CONF_COMFORT_MIN)
    comfort_max = settings.get(CONF_COMFORT_MAX)
    if (
        comfort_min is not None
        and comfort_max is not None
        and float(comfort_min) > float(comfort_max)
    ):
        errors[CONF_COMFORT_MAX] = "invalid_comfort_band"
    return errors


class GridShiftConfigFlow(ConfigFlow, domain=DOMAIN):
    """Handle a config flow for GridShift."""

    VERSION = 1

    def __init__(self) -> None:
        """Initialize the config flow."""
        self._data: dict[str, Any] = {}
        self._region: str | None = None

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Handle the initial step: device type and optional postcode."""
        errors: dict[str, str] = {}

        if user_input is not None:
            postcode = (user_input.get(CONF_POSTCODE) or "").strip().upper()

            if postcode:
                session = async_get_clientsession(self.hass)
                client = CarbonIntensityClient(session, postcode)
                try:
                    self._region = await client.async_validate_postcode()
                except CarbonIntensityPostcodeError:
                    errors[CONF_POSTCODE] = "invalid_postcode"
                except CarbonIntensityApiError:
                    errors["base"] = "cannot_connect"
                except Exception:
                    _LOGGER.exception("Unexpected error validating postcode")
                    errors["base"] = "unknown"

            if not errors:
                self._data = {
                    CONF_DEVICE_TYPE: user_input[CONF_DEVICE_TYPE],
                    CONF_POSTCODE: postcode,
                }
                return await self.async_step_settings()

        return self.async_show_form(
            step_id="user",
            data_schema=STEP_USER_DATA_SCHEMA,
            errors=errors,
        )

    async def async_step_settings(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Handle the planning settings step."""
        device_type = self._data[CONF_DEVICE_TYPE]
        errors: dict[str, str] = {}

        if user_input is not None:
            errors = _validate_settings(user_input)
            if not errors:
                title = f"GridShift {DEVICE_TITLES[device_type]}"
                if self._region:
                    title = f"{title} ({self._region})"
                return self.async_create_entry(
                    title=title,
                    data={**self._data, **user_input},
                )

        return self.async_show_form(
            step_id="settings",
            data_schema=_settings_schema(device_type, user_input or {}),
            errors=errors,
        )

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: ConfigEntry,  # noqa: ARG004
    ) -> GridShiftOptionsFlow:
        """Return the options flow handler."""
        return GridShiftOptionsFlow()


class GridShiftOptionsFlow(OptionsFlow):
    """Adjust the planning settings of an existing entry."""

    async def async_step_init(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Manage the planning settings."""
        errors: dict[str, str] = {}
        if user_input is not None:
            errors = _validate_settings(user_input)
            if not errors:
                return self.async_create_entry(data=user_input)

        current = {
            **self.config_entry.data,
            **self.config_entry.options,
            **(user_input or {}),
        }
        return self.async_show_form(
            step_id="init",
            data_schema=_settings_schema(
                current.get(CONF_DEVICE_TYPE, DEVICE_TYPE_EV_CHARGER), current
            ),
            errors=errors,
        )
