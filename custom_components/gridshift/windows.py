"""Clean window detection over a grid forecast."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta

from .models import CleanWindow, ForecastSample, InputOrderingViolation

_LOGGER = logging.getLogger(__name__)

DEFAULT_SAMPLE_DURATION = timedelta(hours=1)


def validate_forecast(samples: Sequence[ForecastSample]) -> None:
    """Raise InputOrderingViolation unless timestamps are strictly ascending."""
    for index in range(1, len(samples)):
        previous = samples[index - 1].timestamp
        current = samples[index].timestamp
        if current <= previous:
            raise InputOrderingViolation(index, previous, current)


def infer_sample_duration(
    samples: Sequence[ForecastSample],
    default: timedelta = DEFAULT_SAMPLE_DURATION,
) -> timedelta:
    """Return the smallest spacing between consecutive samples."""
    spacing = [
        later.timestamp - earlier.timestamp
        for earlier, later in zip(samples, samples[1:], strict=False)
        if later.timestamp > earlier.timestamp
    ]
    return min(spacing) if spacing else default


def _close_window(
    start: datetime,
    end: datetime,
    run: list[ForecastSample],
    min_duration: timedelta,
) -> CleanWindow | None:
    """Build the window for a finished run, or None if it is too short."""
    if end - start < min_duration:
        _LOGGER.debug(
            "Discarding run %s -> %s (shorter than %s)",
            start.isoformat(),
            end.isoformat(),
            min_duration,
        )
        return None
    average = sum(s.clean_fraction for s in run) / len(run)
    return CleanWindow(start=start, end=end, average_clean_fraction=average)


def detect_windows(
    samples: Sequence[ForecastSample],
    is_qualifying: Callable[[ForecastSample], bool],
    min_duration: timedelta,
    sample_duration: timedelta = DEFAULT_SAMPLE_DURATION,
) -> list[CleanWindow]:
    """
    Find maximal contiguous runs of qualifying samples.

    A run ends where the first non-qualifying sample begins, or at the end
    of the last qualifying sample when a gap or the forecast horizon
    interrupts it. Runs shorter than ``min_duration`` are dropped whole.
    """
    validate_forecast(samples)

    windows: list[CleanWindow] = []
    window_start: datetime | None = None
    run: list[ForecastSample] = []

    def _flush(end: datetime) -> None:
        nonlocal window_start, run
        if window_start is not None:
            window = _close_window(window_start, end, run, min_duration)
            if window is not None:
                windows.append(window)
        window_start = None
        run = []

    for sample in samples:
        if run and sample.timestamp > run[-1].timestamp + sample_duration:
            # Missing data breaks the run at the end of the last sample seen
            _flush(run[-1].timestamp + sample_duration)

        if is_qualifying(sample):
            if window_start is None:
                window_start = sample.timestamp
            run.append(sample)
        elif window_start is not None:
            _flush(sample.timestamp)

    if run:
        _flush(run[-1].timestamp + sample_duration)

    _LOGGER.debug(
        "Detected %d clean windows in %d samples", len(windows), len(samples)
    )
    return windows
