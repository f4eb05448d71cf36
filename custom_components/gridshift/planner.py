"""
Slot planner for GridShift.

Builds an ordered, gap-free sequence of operation slots from ``now`` to a
deadline. Every clean window that starts before the deadline becomes an
active slot, in chronological order; everything between windows is an
idle filler slot. A profile with an OFF threshold turns a filler that
sits wholly in peak-priced samples into an OFF slot, and a profile with
setpoints gives every slot a target temperature.

The planner is greedy and not globally optimal: it does not weigh how
much energy each active slot delivers against what the device still
needs, it simply uses every qualifying window. That is right when the
forecast has more clean capacity than the device needs and under-delivers
only when too few clean hours precede the deadline. Windows are never
reordered "best first", because the device has to reach its target *by*
the deadline.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, timedelta

from .models import (
    CleanWindow,
    ForecastSample,
    InvalidDeadline,
    OperationSlot,
    Plan,
    SlotAction,
)
from .profiles import DeviceProfile, ev_charger_profile
from .windows import detect_windows, infer_sample_duration, validate_forecast

_LOGGER = logging.getLogger(__name__)


class _ForecastCursor:
    """
    Walks a sorted forecast alongside the chronological slots.

    Slots are built in order and never overlap, so samples that end before
    a slot starts can be skipped for good. Building a whole plan touches
    each sample a bounded number of times.
    """

    def __init__(self, forecast: Sequence[ForecastSample], step: timedelta) -> None:
        self._forecast = forecast
        self._step = step
        self._index = 0

    def overlapping(self, start: datetime, end: datetime) -> list[ForecastSample]:
        """Return the samples overlapping ``[start, end)``."""
        forecast = self._forecast
        while (
            self._index < len(forecast)
            and forecast[self._index].timestamp + self._step <= start
        ):
            self._index += 1

        inside = []
        position = self._index
        while position < len(forecast) and forecast[position].timestamp < end:
            inside.append(forecast[position])
            position += 1
        return inside


def _make_slot(  # noqa: PLR0913
    inside: Sequence[ForecastSample],
    start: datetime,
    end: datetime,
    action: SlotAction,
    profile: DeviceProfile,
    current_state: float,
    target_state: float,
) -> OperationSlot:
    """Build a slot annotated with the mean quality of the samples overlapping it."""
    target = profile.target_for(action, current_state, target_state)
    if not inside:
        # Uncovered tail of the forecast counts as non-qualifying
        return OperationSlot(
            start=start,
            end=end,
            action=action,
            quality_at_start=0.0,
            target_temperature=target,
        )

    count = len(inside)
    rates = [s.rate_per_kwh for s in inside if s.rate_per_kwh is not None]
    return OperationSlot(
        start=start,
        end=end,
        action=action,
        quality_at_start=sum(profile.score_policy.score(s) for s in inside) / count,
        clean_fraction=sum(s.clean_fraction for s in inside) / count,
        rate_per_kwh=sum(rates) / len(rates) if rates else None,
        target_temperature=target,
    )


def build_plan(  # noqa: PLR0913
    forecast: Sequence[ForecastSample],
    windows: Sequence[CleanWindow],
    now: datetime,
    deadline: datetime,
    current_state: float,
    target_state: float,
    *,
    profile: DeviceProfile | None = None,
    sample_duration: timedelta | None = None,
) -> Plan:
    """
    Plan device operation from ``now`` until ``deadline``.

    ``windows`` must have been detected on ``forecast`` with the profile's
    qualifying predicate. The returned plan carries the profile
    evaluator's summary.

    Raises:
        InvalidDeadline: ``deadline`` is not after ``now``.
        InputOrderingViolation: ``forecast`` is not sorted by timestamp.

    """
    if deadline <= now:
        raise InvalidDeadline(now, deadline)
    validate_forecast(forecast)

    device = profile or ev_charger_profile()
    step = sample_duration or infer_sample_duration(forecast)
    samples = _ForecastCursor(forecast, step)

    slots: list[OperationSlot] = []
    cursor = now

    def add_slot(start: datetime, end: datetime, action: SlotAction | None) -> None:
        inside = samples.overlapping(start, end)
        if action is None:
            action = device.idle_action_for(inside)
        slots.append(
            _make_slot(inside, start, end, action, device, current_state, target_state)
        )

    for window in windows:
        if window.start >= deadline:
            continue
        window = window.clipped(deadline)  # noqa: PLW2901
        if window.end <= cursor:
            continue

        if window.start > cursor:
            add_slot(cursor, window.start, None)
            cursor = window.start

        action = device.direction(current_state, target_state, cursor)
        add_slot(cursor, window.end, action)
        cursor = window.end

    if cursor < deadline:
        add_slot(cursor, deadline, None)

    plan = Plan(
        slots=tuple(slots),
        now=now,
        deadline=deadline,
        current_state=current_state,
        target_state=target_state,
    )
    plan = replace(plan, summary=device.evaluator.evaluate(plan))

    _LOGGER.debug(
        "Planned %d slots (%d active) until %s, quality %.0f",
        len(slots),
        len(plan.active_slots),
        deadline.isoformat(),
        plan.estimated_quality_score,
    )
    return plan


def plan_operation(  # noqa: PLR0913
    forecast: Sequence[ForecastSample],
    now: datetime,
    deadline: datetime,
    current_state: float,
    target_state: float,
    profile: DeviceProfile,
) -> tuple[list[CleanWindow], Plan]:
    """Detect clean windows in ``forecast`` and plan around them."""
    if deadline <= now:
        raise InvalidDeadline(now, deadline)

    step = infer_sample_duration(forecast)
    windows = detect_windows(
        forecast, profile.is_qualifying, profile.min_window_duration, step
    )
    plan = build_plan(
        forecast,
        windows,
        now,
        deadline,
        current_state,
        target_state,
        profile=profile,
        sample_duration=step,
    )
    return windows, plan
