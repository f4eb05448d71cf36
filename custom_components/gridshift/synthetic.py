"""
Synthetic grid forecast for GridShift.

A fixed 24 hour profile of clean-energy share and time-of-use tiers,
repeated for as many days as requested. Used when no live source is
configured or the live source is down, so a plan can always be built.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from homeassistant.util import dt as dt_util

from .const import SOURCE_SYNTHETIC
from .models import ForecastSample, PriceTier, TouRates

# Clean share by local hour of day: overnight wind, a solar midday peak,
# an evening dip and a late wind recovery.
HOURLY_CLEAN_FRACTION = (
    0.45, 0.42, 0.40, 0.38, 0.35, 0.40,
    0.50, 0.55, 0.65, 0.72, 0.80, 0.85,
    0.87, 0.82, 0.70, 0.55, 0.40, 0.35,
    0.45, 0.60, 0.75, 0.80, 0.70, 0.55,
)  # fmt: skip

# Time-of-use tier by local hour of day
HOURLY_PRICE_TIER = (
    *(PriceTier.LOW,) * 8,  # 00-07 off-peak
    *(PriceTier.MID,) * 4,  # 08-11
    *(PriceTier.HIGH,) * 2,  # 12-13
    *(PriceTier.MID,) * 2,  # 14-15
    *(PriceTier.HIGH,) * 3,  # 16-18
    *(PriceTier.MID,) * 3,  # 19-21
    *(PriceTier.LOW,) * 2,  # 22-23
)

SAMPLE_DURATION = timedelta(hours=1)


def synthetic_sample(
    timestamp: datetime, rates: TouRates | None = None
) -> ForecastSample:
    """Return the synthetic sample for the hour starting at ``timestamp``."""
    hour = dt_util.as_local(timestamp).hour
    tier = HOURLY_PRICE_TIER[hour]
    return ForecastSample(
        timestamp=timestamp,
        clean_fraction=HOURLY_CLEAN_FRACTION[hour],
        price_tier=tier,
        rate_per_kwh=(rates or TouRates()).rate_for(tier),
    )


class SyntheticForecastProvider:
    """Deterministic hourly forecast that never fails."""

    source = SOURCE_SYNTHETIC

    def __init__(self, rates: TouRates | None = None) -> None:
        """Initialize the provider."""
        self._rates = rates or TouRates()

    def generate(self, start: datetime, end: datetime) -> list[ForecastSample]:
        """Return hourly samples from the hour containing ``start`` until ``end``."""
        cursor = start.replace(minute=0, second=0, microsecond=0)
        samples: list[ForecastSample] = []
        while cursor < end:
            samples.append(synthetic_sample(cursor, self._rates))
            cursor += SAMPLE_DURATION
        return samples

    async def async_get_forecast(
        self, start: datetime, end: datetime
    ) -> list[ForecastSample]:
        """Return the synthetic forecast for ``[start, end)``."""
        return self.generate(start, end)
