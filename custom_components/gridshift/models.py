"""
Value types for the GridShift scheduler core.

Everything here is immutable. A ``Plan`` is built once per planning call
and superseded, never mutated, by the next one. None of these types
depend on Home Assistant so the scheduler can be exercised on its own.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum


class SchedulerError(Exception):
    """Base exception for scheduler precondition violations."""


class InputOrderingViolation(SchedulerError):
    """Forecast samples are not strictly ascending by timestamp."""

    def __init__(self, index: int, previous: datetime, current: datetime) -> None:
        """Initialize with the offending position."""
        super().__init__(
            f"Forecast sample {index} at {current.isoformat()} does not come "
            f"after {previous.isoformat()}"
        )
        self.index = index


class InvalidDeadline(SchedulerError):
    """The deadline is not after the planning start."""

    def __init__(self, now: datetime, deadline: datetime) -> None:
        """Initialize with the rejected span."""
        super().__init__(
            f"Deadline {deadline.isoformat()} must be after {now.isoformat()}"
        )


class PriceTier(StrEnum):
    """Time-of-use price band of a forecast sample."""

    LOW = "low"
    MID = "mid"
    HIGH = "high"


@dataclass(frozen=True)
class TouRates:
    """Nominal rate per kWh for each price tier."""

    low: float = 0.12
    mid: float = 0.22
    high: float = 0.38

    @property
    def peak(self) -> float:
        """Highest nominal rate, used to normalise scores."""
        return self.high

    def rate_for(self, tier: PriceTier | None) -> float:
        """Return the nominal rate of a tier (MID when unknown)."""
        if tier is PriceTier.LOW:
            return self.low
        if tier is PriceTier.HIGH:
            return self.high
        return self.mid


@dataclass(frozen=True)
class ForecastSample:
    """
    One grid forecast observation.

    Attributes:
        timestamp: Start of the period the sample describes.
        clean_fraction: Share of supply from clean sources, 0.0 to 1.0.
        price_tier: Time-of-use band, if the source provides one.
        rate_per_kwh: Nominal rate of ``price_tier``.

    """

    timestamp: datetime
    clean_fraction: float
    price_tier: PriceTier | None = None
    rate_per_kwh: float | None = None


@dataclass(frozen=True)
class CleanWindow:
    """A maximal run of qualifying samples, end exclusive."""

    start: datetime
    end: datetime
    average_clean_fraction: float

    @property
    def duration(self) -> timedelta:
        """Length of the window."""
        return self.end - self.start

    def clipped(self, deadline: datetime) -> CleanWindow:
        """Return this window with its end capped at ``deadline``."""
        if self.end <= deadline:
            return self
        return CleanWindow(
            start=self.start,
            end=deadline,
            average_clean_fraction=self.average_clean_fraction,
        )


@dataclass(frozen=True)
class ComfortProfile:
    """
    Indoor temperature band an HVAC plan should respect.

    Attributes:
        minimum_temperature: Lowest comfortable temperature, pre-cool target.
        maximum_temperature: Highest comfortable temperature, pre-heat target.
        away_temperature: Setback the room drifts to while the system is off.

    """

    minimum_temperature: float = 20.0
    maximum_temperature: float = 24.0
    away_temperature: float = 16.0

    @property
    def midpoint(self) -> float:
        """Centre of the comfort band."""
        return (self.minimum_temperature + self.maximum_temperature) / 2

    @property
    def half_range(self) -> float:
        """Half the width of the comfort band."""
        return (self.maximum_temperature - self.minimum_temperature) / 2


class SlotAction(StrEnum):
    """What the device should be doing during a slot."""

    CHARGE = "charge"
    WAIT = "wait"
    PRE_HEAT = "pre_heat"
    PRE_COOL = "pre_cool"
    NORMAL = "normal"
    PASSIVE = "passive"
    OFF = "off"


ACTIVE_ACTIONS = frozenset(
    {SlotAction.CHARGE, SlotAction.PRE_HEAT, SlotAction.PRE_COOL, SlotAction.NORMAL}
)


@dataclass(frozen=True)
class OperationSlot:
    """One contiguous segment of a plan, tagged with a single action."""

    start: datetime
    end: datetime
    action: SlotAction
    quality_at_start: float
    clean_fraction: float = 0.0
    rate_per_kwh: float | None = None
    target_temperature: float | None = None

    @property
    def duration(self) -> timedelta:
        """Length of the slot."""
        return self.end - self.start

    @property
    def duration_hours(self) -> float:
        """Length of the slot in hours."""
        return self.duration.total_seconds() / 3600.0

    @property
    def is_active(self) -> bool:
        """Whether the slot drives the device toward its target."""
        return self.action in ACTIVE_ACTIONS

    def contains(self, instant: datetime) -> bool:
        """Whether ``instant`` falls inside ``[start, end)``."""
        return self.start <= instant < self.end


@dataclass(frozen=True)
class PlanSummary:
    """Aggregate estimates for a finished plan."""

    estimated_savings_cost: float = 0.0
    estimated_savings_co2_kg: float = 0.0
    estimated_quality_score: float = 0.0
    estimated_energy_kwh: float = 0.0
    estimated_points: int = 0
    estimated_comfort_score: float = 0.0

    @classmethod
    def empty(cls) -> PlanSummary:
        """Return the all-zero summary."""
        return cls()


@dataclass(frozen=True)
class Plan:
    """An ordered, gap-free sequence of slots from ``now`` to ``deadline``."""

    slots: tuple[OperationSlot, ...]
    now: datetime
    deadline: datetime
    current_state: float
    target_state: float
    summary: PlanSummary = field(default_factory=PlanSummary.empty)

    @property
    def estimated_savings_cost(self) -> float:
        """Estimated money saved by following the plan."""
        return self.summary.estimated_savings_cost

    @property
    def estimated_savings_co2_kg(self) -> float:
        """Estimated CO2 avoided by following the plan."""
        return self.summary.estimated_savings_co2_kg

    @property
    def estimated_quality_score(self) -> float:
        """Quality of the energy used by active slots, 0 to 100."""
        return self.summary.estimated_quality_score

    @property
    def active_slots(self) -> list[OperationSlot]:
        """Slots tagged with an active action."""
        return [slot for slot in self.slots if slot.is_active]

    def slot_at(self, instant: datetime) -> OperationSlot | None:
        """Return the slot covering ``instant``, if any."""
        for slot in self.slots:
            if slot.contains(instant):
                return slot
        return None

    def next_active_slot(self, instant: datetime) -> OperationSlot | None:
        """Return the first active slot that has not ended by ``instant``."""
        for slot in self.slots:
            if slot.is_active and slot.end > instant:
                return slot
        return None
