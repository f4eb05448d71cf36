"""
Device profiles for the GridShift planner.

The EV charger and HVAC instantiations share one control flow and differ
only in three places: which samples qualify for a clean window, which
action an active slot gets, and how the finished plan is monetised. A
``DeviceProfile`` bundles those three choices. HVAC profiles also carry a
comfort band that gives every slot a target temperature, and may switch
the system off through expensive peak hours.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Protocol

from .const import (
    CONF_AWAY_TEMPERATURE,
    CONF_CLEAN_FLOOR,
    CONF_COMFORT_MAX,
    CONF_COMFORT_MIN,
    CONF_DEVICE_TYPE,
    CONF_MIN_CLEAN_FRACTION,
    CONF_MIN_WINDOW_MINUTES,
    CONF_OFF_SCORE_THRESHOLD,
    CONF_QUALIFYING_MODE,
    CONF_SCORE_THRESHOLD,
    DEFAULT_AWAY_TEMPERATURE,
    DEFAULT_CLEAN_FLOOR,
    DEFAULT_COMFORT_MAX,
    DEFAULT_COMFORT_MIN,
    DEFAULT_EV_MIN_WINDOW_MINUTES,
    DEFAULT_HVAC_MIN_WINDOW_MINUTES,
    DEFAULT_MIN_CLEAN_FRACTION,
    DEFAULT_OFF_SCORE_THRESHOLD,
    DEFAULT_SCORE_THRESHOLD,
    DEVICE_TYPE_EV_CHARGER,
    DEVICE_TYPE_HVAC,
    QUALIFYING_MODE_SCORE,
    QUALIFYING_MODE_TIER,
)
from .evaluator import (
    CleanChargeEvaluator,
    EvEvaluationConfig,
    HvacEvaluationConfig,
    PlanEvaluator,
    TouSavingsEvaluator,
)
from .models import ComfortProfile, ForecastSample, PriceTier, SlotAction, TouRates
from .scoring import (
    CleanFractionPolicy,
    SamplePredicate,
    ScorePolicy,
    TouScorePolicy,
    clean_fraction_at_least,
    off_peak_and_clean,
    score_above,
)


class DirectionStrategy(Protocol):
    """Chooses the action for an active slot."""

    def __call__(
        self, current_state: float, target_state: float, slot_start: datetime
    ) -> SlotAction:
        """Return the action for a slot starting at ``slot_start``."""
        ...


@dataclass(frozen=True)
class AlwaysCharge:
    """EV direction: every clean window is used for charging."""

    def __call__(
        self,
        current_state: float,  # noqa: ARG002
        target_state: float,  # noqa: ARG002
        slot_start: datetime,  # noqa: ARG002
    ) -> SlotAction:
        """Return CHARGE."""
        return SlotAction.CHARGE


@dataclass(frozen=True)
class TargetDeltaDirection:
    """
    HVAC direction from the indoor temperature gap.

    Below target by more than ``deadband`` pre-heats, above by more than
    ``deadband`` pre-cools, anything closer runs normally.
    """

    deadband: float = 0.25

    def __call__(
        self,
        current_state: float,
        target_state: float,
        slot_start: datetime,  # noqa: ARG002
    ) -> SlotAction:
        """Return PRE_HEAT, PRE_COOL or NORMAL."""
        if current_state < target_state - self.deadband:
            return SlotAction.PRE_HEAT
        if current_state > target_state + self.deadband:
            return SlotAction.PRE_COOL
        return SlotAction.NORMAL


@dataclass(frozen=True)
class OutdoorTemperatureDirection:
    """HVAC direction from the outdoor temperature."""

    outdoor_temperature: float
    heat_below: float = 15.0
    cool_above: float = 28.0

    def __call__(
        self,
        current_state: float,  # noqa: ARG002
        target_state: float,  # noqa: ARG002
        slot_start: datetime,  # noqa: ARG002
    ) -> SlotAction:
        """Return PRE_HEAT, PRE_COOL or NORMAL."""
        if self.outdoor_temperature < self.heat_below:
            return SlotAction.PRE_HEAT
        if self.outdoor_temperature > self.cool_above:
            return SlotAction.PRE_COOL
        return SlotAction.NORMAL


class SlotTargetStrategy(Protocol):
    """Chooses the setpoint a slot runs at."""

    def __call__(
        self, action: SlotAction, current_state: float, target_state: float
    ) -> float | None:
        """Return the setpoint for ``action``, or None when it has none."""
        ...


@dataclass(frozen=True)
class ComfortTargets:
    """
    HVAC setpoints from the comfort band.

    Pre-heating drives to the top of the band and pre-cooling to the
    bottom, normal running holds the midpoint, passive slots keep the
    current temperature and an OFF slot drifts to the away setback.
    """

    comfort: ComfortProfile

    def __call__(
        self,
        action: SlotAction,
        current_state: float,
        target_state: float,  # noqa: ARG002
    ) -> float | None:
        """Return the target temperature for ``action``."""
        if action is SlotAction.PRE_HEAT:
            return self.comfort.maximum_temperature
        if action is SlotAction.PRE_COOL:
            return self.comfort.minimum_temperature
        if action is SlotAction.NORMAL:
            return self.comfort.midpoint
        if action is SlotAction.PASSIVE:
            return current_state
        if action is SlotAction.OFF:
            return self.comfort.away_temperature
        return None


@dataclass(frozen=True)
class DeviceProfile:
    """
    Everything that distinguishes one device variant from another.

    ``off_score_threshold`` turns an idle stretch into OFF when every
    sample under it is peak priced and their mean score is above the
    threshold. ``slot_target`` annotates each slot with a setpoint.
    """

    device_type: str
    score_policy: ScorePolicy
    is_qualifying: SamplePredicate
    min_window_duration: timedelta
    direction: DirectionStrategy
    evaluator: PlanEvaluator
    idle_action: SlotAction
    state_unit: str = ""
    slot_target: SlotTargetStrategy | None = None
    off_score_threshold: float | None = None

    def idle_action_for(self, samples: Sequence[ForecastSample]) -> SlotAction:
        """Return the action for an idle slot covering ``samples``."""
        if self.off_score_threshold is None or not samples:
            return self.idle_action
        if any(s.price_tier is not PriceTier.HIGH for s in samples):
            return self.idle_action
        mean_score = sum(self.score_policy.score(s) for s in samples) / len(samples)
        if mean_score > self.off_score_threshold:
            return SlotAction.OFF
        return self.idle_action

    def target_for(
        self, action: SlotAction, current_state: float, target_state: float
    ) -> float | None:
        """Return the setpoint of a slot, if this profile has setpoints."""
        if self.slot_target is None:
            return None
        return self.slot_target(action, current_state, target_state)


def ev_charger_profile(
    min_clean_fraction: float = DEFAULT_MIN_CLEAN_FRACTION,
    min_window_minutes: float = DEFAULT_EV_MIN_WINDOW_MINUTES,
    config: EvEvaluationConfig | None = None,
) -> DeviceProfile:
    """Build the EV charger profile."""
    return DeviceProfile(
        device_type=DEVICE_TYPE_EV_CHARGER,
        score_policy=CleanFractionPolicy(),
        is_qualifying=clean_fraction_at_least(min_clean_fraction),
        min_window_duration=timedelta(minutes=min_window_minutes),
        direction=AlwaysCharge(),
        evaluator=CleanChargeEvaluator(config or EvEvaluationConfig()),
        idle_action=SlotAction.WAIT,
        state_unit="%",
    )


def hvac_profile(  # noqa: PLR0913
    rates: TouRates | None = None,
    qualifying_mode: str = QUALIFYING_MODE_SCORE,
    score_threshold: float = DEFAULT_SCORE_THRESHOLD,
    clean_floor: float = DEFAULT_CLEAN_FLOOR,
    min_window_minutes: float = DEFAULT_HVAC_MIN_WINDOW_MINUTES,
    direction: DirectionStrategy | None = None,
    config: HvacEvaluationConfig | None = None,
    comfort: ComfortProfile | None = None,
    off_score_threshold: float | None = DEFAULT_OFF_SCORE_THRESHOLD,
) -> DeviceProfile:
    """
    Build the HVAC profile.

    ``comfort`` sets the band slot targets and the comfort score use; it
    overrides the band in ``config`` when both are given.
    """
    policy = TouScorePolicy(rates=rates or TouRates())
    config = config or HvacEvaluationConfig()
    if comfort is not None:
        config = replace(config, comfort=comfort)

    if qualifying_mode == QUALIFYING_MODE_TIER:
        predicate = off_peak_and_clean(clean_floor)
    elif qualifying_mode == QUALIFYING_MODE_SCORE:
        predicate = score_above(policy, score_threshold)
    else:
        msg = f"Unknown qualifying mode: {qualifying_mode}"
        raise ValueError(msg)

    return DeviceProfile(
        device_type=DEVICE_TYPE_HVAC,
        score_policy=policy,
        is_qualifying=predicate,
        min_window_duration=timedelta(minutes=min_window_minutes),
        direction=direction or TargetDeltaDirection(),
        evaluator=TouSavingsEvaluator(config),
        idle_action=SlotAction.PASSIVE,
        state_unit="°C",
        slot_target=ComfortTargets(config.comfort),
        off_score_threshold=off_score_threshold,
    )


def profile_from_settings(
    settings: Mapping[str, Any], rates: TouRates | None = None
) -> DeviceProfile:
    """Build the profile described by a config entry's data and options."""
    device_type = settings.get(CONF_DEVICE_TYPE, DEVICE_TYPE_EV_CHARGER)

    if device_type == DEVICE_TYPE_EV_CHARGER:
        return ev_charger_profile(
            min_clean_fraction=float(
                settings.get(CONF_MIN_CLEAN_FRACTION, DEFAULT_MIN_CLEAN_FRACTION)
            ),
            min_window_minutes=float(
                settings.get(CONF_MIN_WINDOW_MINUTES, DEFAULT_EV_MIN_WINDOW_MINUTES)
            ),
        )
    if device_type == DEVICE_TYPE_HVAC:
        return hvac_profile(
            rates=rates,
            qualifying_mode=settings.get(CONF_QUALIFYING_MODE, QUALIFYING_MODE_SCORE),
            score_threshold=float(
                settings.get(CONF_SCORE_THRESHOLD, DEFAULT_SCORE_THRESHOLD)
            ),
            clean_floor=float(settings.get(CONF_CLEAN_FLOOR, DEFAULT_CLEAN_FLOOR)),
            min_window_minutes=float(
                settings.get(CONF_MIN_WINDOW_MINUTES, DEFAULT_HVAC_MIN_WINDOW_MINUTES)
            ),
            comfort=ComfortProfile(
                minimum_temperature=float(
                    settings.get(CONF_COMFORT_MIN, DEFAULT_COMFORT_MIN)
                ),
                maximum_temperature=float(
                    settings.get(CONF_COMFORT_MAX, DEFAULT_COMFORT_MAX)
                ),
                away_temperature=float(
                    settings.get(CONF_AWAY_TEMPERATURE, DEFAULT_AWAY_TEMPERATURE)
                ),
            ),
            off_score_threshold=float(
                settings.get(CONF_OFF_SCORE_THRESHOLD, DEFAULT_OFF_SCORE_THRESHOLD)
            ),
        )

    msg = f"Unknown device type: {device_type}"
    raise ValueError(msg)
