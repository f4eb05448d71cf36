"""DataUpdateCoordinator for the GridShift operation plan."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import ATTR_TEMPERATURE, STATE_UNAVAILABLE, STATE_UNKNOWN
from homeassistant.core import (
    CALLBACK_TYPE,
    Event,
    EventStateChangedData,
    HomeAssistant,
    callback,
)
from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.helpers.event import (
    async_track_state_change_event,
    async_track_utc_time_change,
)
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed
from homeassistant.util import dt as dt_util

from .carbon_intensity_api import CarbonIntensityClient
from .const import (
    CONF_CURRENT_STATE,
    CONF_DEADLINE,
    CONF_DEVICE_TYPE,
    CONF_POSTCODE,
    CONF_STATE_ENTITY,
    CONF_TARGET_STATE,
    DEFAULT_DEADLINE,
    DEFAULT_EV_CURRENT_STATE,
    DEFAULT_EV_TARGET_STATE,
    DEFAULT_HVAC_CURRENT_STATE,
    DEFAULT_HVAC_TARGET_STATE,
    DEVICE_TYPE_HVAC,
    DOMAIN,
    FORECAST_HORIZON_HOURS,
    REPLAN_INTERVAL_MIN,
)
from .forecast_provider import (
    FallbackForecastProvider,
    ForecastProvider,
    ForecastUnavailableError,
)
from .models import CleanWindow, ForecastSample, Plan, SchedulerError, TouRates
from .planner import build_plan, plan_operation
from .profiles import DeviceProfile, profile_from_settings
from .synthetic import SyntheticForecastProvider
from .windows import infer_sample_duration

_LOGGER = logging.getLogger(__name__)

FORECAST_UPDATE_INTERVAL = timedelta(hours=1)

ATTR_CURRENT_TEMPERATURE = "current_temperature"


@dataclass(frozen=True)
class PlanState:
    """
    Snapshot published to entities after every planning run.

    Attributes:
        forecast: Samples the plan was built from.
        windows: Clean windows detected in the forecast.
        plan: The operation plan from ``generated_at`` to the deadline.
        source: Forecast source that delivered ``forecast``.
        generated_at: Planning start.
        enabled: Whether smart planning was on for this run.
        sample_duration: Period each forecast sample covers.

    """

    forecast: tuple[ForecastSample, ...]
    windows: tuple[CleanWindow, ...]
    plan: Plan
    source: str
    generated_at: datetime
    enabled: bool = True
    sample_duration: timedelta = timedelta(hours=1)

    def sample_at(self, instant: datetime) -> ForecastSample | None:
        """Return the sample covering ``instant``, None outside the forecast."""
        current = None
        for sample in self.forecast:
            if sample.timestamp > instant:
                break
            current = sample
        if current is None or instant >= current.timestamp + self.sample_duration:
            return None
        return current

    def window_at(self, instant: datetime) -> CleanWindow | None:
        """Return the clean window containing ``instant``, if any."""
        for window in self.windows:
            if window.start <= instant < window.end:
                return window
        return None

    def next_window(self, instant: datetime) -> CleanWindow | None:
        """Return the first clean window that has not ended by ``instant``."""
        for window in self.windows:
            if window.end > instant:
                return window
        return None


def resolve_deadline(now: datetime, deadline: time) -> datetime:
    """Return the next local occurrence of ``deadline`` after ``now``."""
    local_now = dt_util.as_local(now)
    candidate = local_now.replace(
        hour=deadline.hour,
        minute=deadline.minute,
        second=deadline.second,
        microsecond=0,
    )
    if candidate <= local_now:
        candidate += timedelta(days=1)
    return dt_util.as_utc(candidate)


def _parse_deadline(value: Any) -> time:
    """Parse a configured deadline, falling back to the default."""
    if isinstance(value, time):
        return value
    parsed = dt_util.parse_time(str(value)) if value else None
    if parsed is None:
        _LOGGER.warning("Invalid deadline %s, using %s", value, DEFAULT_DEADLINE)
        parsed = dt_util.parse_time(DEFAULT_DEADLINE)
    return parsed


class PlanCoordinator(DataUpdateCoordinator[PlanState]):
    """
    Coordinator that owns the current operation plan.

    Fetches a fresh forecast every hour and re-plans from the cached
    forecast at every 15-minute boundary, whenever the state entity
    changes, and on request. Each run replaces ``data`` with a new
    ``PlanState``; plans are never edited in place.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        entry: ConfigEntry,
        provider: ForecastProvider | None = None,
    ) -> None:
        """Initialize the plan coordinator."""
        super().__init__(
            hass,
            _LOGGER,
            name=f"{DOMAIN}_plan_coordinator",
            update_interval=FORECAST_UPDATE_INTERVAL,
            config_entry=entry,
        )
        settings = {**entry.data, **entry.options}
        self.rates = TouRates()
        self.profile: DeviceProfile = profile_from_settings(settings, self.rates)
        self._state_entity: str | None = settings.get(CONF_STATE_ENTITY) or None

        is_hvac = settings.get(CONF_DEVICE_TYPE) == DEVICE_TYPE_HVAC
        self.target_state = float(
            settings.get(
                CONF_TARGET_STATE,
                DEFAULT_HVAC_TARGET_STATE if is_hvac else DEFAULT_EV_TARGET_STATE,
            )
        )
        self._default_current_state = float(
            settings.get(
                CONF_CURRENT_STATE,
                DEFAULT_HVAC_CURRENT_STATE if is_hvac else DEFAULT_EV_CURRENT_STATE,
            )
        )
        self._current_state_override: float | None = None
        self.deadline_time = _parse_deadline(settings.get(CONF_DEADLINE))

        if provider is None:
            client = CarbonIntensityClient(
                async_get_clientsession(hass), settings.get(CONF_POSTCODE), self.rates
            )
            provider = FallbackForecastProvider(
                client, SyntheticForecastProvider(self.rates)
            )
        self._provider = provider

        self._forecast: tuple[ForecastSample, ...] = ()
        self._source: str = provider.source
        self._last_fetch: datetime | None = None
        self._enabled: bool = True
        self._replan_unsub: CALLBACK_TYPE | None = None
        self._state_unsub: CALLBACK_TYPE | None = None

    @property
    def enabled(self) -> bool:
        """Return whether smart planning is enabled."""
        return self._enabled

    @property
    def forecast_error(self) -> str | None:
        """Return the reason the primary source was last skipped, if any."""
        if not isinstance(self._provider, FallbackForecastProvider):
            return None
        error = self._provider.last_error
        return str(error) if error is not None else None

    # ------------------------------------------------------------------
    # Timers and listeners
    # ------------------------------------------------------------------

    @callback
    def _async_start_replan_timer(self) -> None:
        """Start the re-plan boundary timer."""
        if self._replan_unsub is not None:
            return

        @callback
        def _on_boundary(_now: datetime) -> None:
            """Re-plan from the cached forecast."""
            if self.data is not None:
                self.hass.async_create_task(self.async_replan())

        self._replan_unsub = async_track_utc_time_change(
            self.hass,
            _on_boundary,
            minute=tuple(range(0, 60, REPLAN_INTERVAL_MIN)),
            second=0,
        )

    @callback
    def _async_stop_replan_timer(self) -> None:
        """Stop the re-plan boundary timer."""
        if self._replan_unsub is not None:
            self._replan_unsub()
            self._replan_unsub = None

    @callback
    def _async_start_state_listener(self) -> None:
        """Re-plan whenever the device state entity changes."""
        if self._state_unsub is not None or self._state_entity is None:
            return

        @callback
        def _on_state_change(
            _event: Event[EventStateChangedData],
        ) -> None:
            """Re-plan with the new device state."""
            self.hass.async_create_task(self.async_replan())

        self._state_unsub = async_track_state_change_event(
            self.hass, [self._state_entity], _on_state_change
        )

    @callback
    def _async_stop_state_listener(self) -> None:
        """Stop listening for device state changes."""
        if self._state_unsub is not None:
            self._state_unsub()
            self._state_unsub = None

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    @property
    def current_state(self) -> float:
        """Return the device state the next plan starts from."""
        if self._current_state_override is not None:
            return self._current_state_override
        if self._state_entity is None:
            return self._default_current_state

        state = self.hass.states.get(self._state_entity)
        if state is None or state.state in (STATE_UNAVAILABLE, STATE_UNKNOWN):
            _LOGGER.debug(
                "State entity %s unavailable, using %s",
                self._state_entity,
                self._default_current_state,
            )
            return self._default_current_state

        raw = state.attributes.get(ATTR_CURRENT_TEMPERATURE)
        if raw is None:
            raw = state.attributes.get(ATTR_TEMPERATURE, state.state)
        try:
            return float(raw)
        except (ValueError, TypeError):
            _LOGGER.debug(
                "State entity %s has non-numeric state %s", self._state_entity, raw
            )
            return self._default_current_state

    def _build_state(self, now: datetime) -> PlanState:
        """Plan from the cached forecast, raising UpdateFailed on bad input."""
        deadline = resolve_deadline(now, self.deadline_time)
        current = self.current_state

        try:
            if self._enabled:
                windows, plan = plan_operation(
                    self._forecast,
                    now,
                    deadline,
                    current,
                    self.target_state,
                    self.profile,
                )
            else:
                windows = []
                plan = build_plan(
                    self._forecast,
                    [],
                    now,
                    deadline,
                    current,
                    self.target_state,
                    profile=self.profile,
                )
        except SchedulerError as err:
            _LOGGER.error("Planning failed: %s", err)
            msg = f"Planning failed: {err}"
            raise UpdateFailed(msg) from err

        return PlanState(
            forecast=self._forecast,
            windows=tuple(windows),
            plan=plan,
            source=self._source,
            generated_at=now,
            enabled=self._enabled,
            sample_duration=infer_sample_duration(self._forecast),
        )

    async def _async_fetch_forecast(self, now: datetime) -> None:
        """Fetch the forecast horizon starting at the current half hour."""
        start = now.replace(
            minute=now.minute - now.minute % 30, second=0, microsecond=0
        )
        end = start + timedelta(hours=FORECAST_HORIZON_HOURS)

        try:
            samples = await self._provider.async_get_forecast(start, end)
        except ForecastUnavailableError as err:
            msg = f"No forecast available: {err}"
            raise UpdateFailed(msg) from err

        self._forecast = tuple(samples)
        self._source = self._provider.source
        self._last_fetch = now
        _LOGGER.debug(
            "Fetched %d forecast samples from %s", len(samples), self._source
        )

    async def _async_update_data(self) -> PlanState:
        """Fetch the forecast and plan."""
        now = dt_util.utcnow()
        await self._async_fetch_forecast(now)
        state = self._build_state(now)

        # Start the timers after the first successful run
        self._async_start_replan_timer()
        self._async_start_state_listener()
        return state

    def _forecast_is_stale(self, now: datetime) -> bool:
        """Return whether the cached forecast is due for a refetch."""
        return (
            self._last_fetch is None
            or now - self._last_fetch >= FORECAST_UPDATE_INTERVAL
        )

    async def async_replan(self) -> None:
        """Re-plan from the cached forecast, refetching it once it is an hour old."""
        now = dt_util.utcnow()
        if self._forecast_is_stale(now):
            await self.async_request_refresh()
            return

        try:
            state = self._build_state(now)
        except UpdateFailed as err:
            self.async_set_update_error(err)
            return
        self.async_set_updated_data(state)

    async def async_set_target(
        self,
        target_state: float,
        deadline: time | None = None,
        current_state: float | None = None,
    ) -> None:
        """Change the planning target and re-plan."""
        self.target_state = float(target_state)
        if deadline is not None:
            self.deadline_time = deadline
        if current_state is not None:
            self._current_state_override = float(current_state)
        _LOGGER.info(
            "Plan target set to %s%s by %s",
            self.target_state,
            self.profile.state_unit,
            self.deadline_time.isoformat(),
        )
        await self.async_replan()

    async def async_set_enabled(self, *, enabled: bool) -> None:
        """Enable or disable smart planning."""
        self._enabled = enabled
        _LOGGER.info("Smart planning %s", "enabled" if enabled else "disabled")
        await self.async_replan()

    async def async_shutdown(self) -> None:
        """Shut down the coordinator and clean up timers."""
        self._async_stop_replan_timer()
        self._async_stop_state_listener()
        await super().async_shutdown()
