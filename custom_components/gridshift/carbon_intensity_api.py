"""
Carbon Intensity API client for GridShift.

Fetches the regional half-hourly forecast published by National Grid ESO
for Great Britain and converts it to forecast samples. The clean fraction
is the share of low-carbon fuels in the forecast generation mix, and the
intensity index stands in for the price tier.

API docs: https://carbon-intensity.github.io/api-definitions/
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

import aiohttp
from homeassistant.util import dt as dt_util

from .const import (
    CARBON_INTENSITY_API_BASE,
    CARBON_INTENSITY_SAMPLE_MINUTES,
    FORECAST_HORIZON_HOURS,
    SOURCE_CARBON_INTENSITY,
)
from .forecast_provider import ForecastFetchError, ForecastNotConfiguredError
from .models import ForecastSample, PriceTier, TouRates

_LOGGER = logging.getLogger(__name__)

# HTTP status codes
_HTTP_OK = 200
_HTTP_BAD_REQUEST = 400

CLEAN_FUELS = frozenset({"biomass", "nuclear", "hydro", "wind", "solar"})

INDEX_TO_TIER = {
    "very low": PriceTier.LOW,
    "low": PriceTier.LOW,
    "moderate": PriceTier.MID,
    "high": PriceTier.HIGH,
    "very high": PriceTier.HIGH,
}


class CarbonIntensityApiError(ForecastFetchError):
    """Raised when the Carbon Intensity API call fails."""


class CarbonIntensityPostcodeError(CarbonIntensityApiError):
    """The API rejected the postcode."""


def outcode(postcode: str) -> str:
    """Return the outward part of a UK postcode (``"RG10 9XX"`` -> ``"RG10"``)."""
    parts = postcode.strip().upper().split()
    return parts[0] if parts else ""


class CarbonIntensityClient:
    """Client for the regional Carbon Intensity forecast."""

    source = SOURCE_CARBON_INTENSITY

    def __init__(
        self,
        session: aiohttp.ClientSession,
        postcode: str | None,
        rates: TouRates | None = None,
    ) -> None:
        """Initialize the Carbon Intensity client."""
        self._session = session
        self._outcode = outcode(postcode or "")
        self._rates = rates or TouRates()

    def _build_url(self, start: datetime) -> str:
        """Build the 48 hour forward forecast URL from ``start``."""
        from_str = dt_util.as_utc(start).strftime("%Y-%m-%dT%H:%MZ")
        return (
            f"{CARBON_INTENSITY_API_BASE}/regional/intensity/{from_str}"
            f"/fw{FORECAST_HORIZON_HOURS}h/postcode/{self._outcode}"
        )

    async def _fetch(self, start: datetime) -> dict[str, Any]:
        """Fetch the raw forecast payload."""
        if not self._outcode:
            msg = "No postcode configured for the Carbon Intensity API"
            raise ForecastNotConfiguredError(msg)

        url = self._build_url(start)
        _LOGGER.debug("Fetching grid forecast from %s", url)

        try:
            async with self._session.get(
                url,
                headers={"Accept": "application/json"},
                timeout=aiohttp.ClientTimeout(total=15),
            ) as resp:
                if resp.status == _HTTP_BAD_REQUEST:
                    msg = f"Postcode {self._outcode} rejected by Carbon Intensity API"
                    raise CarbonIntensityPostcodeError(msg)
                if resp.status != _HTTP_OK:
                    text = await resp.text()
                    msg = f"Carbon Intensity API returned {resp.status}: {text[:200]}"
                    raise CarbonIntensityApiError(msg)
                if resp.content_type != "application/json":
                    msg = f"Unexpected content type: {resp.content_type}"
                    raise CarbonIntensityApiError(msg)

                return await resp.json()

        except aiohttp.ClientError as err:
            msg = f"Failed to connect to Carbon Intensity API: {err}"
            raise CarbonIntensityApiError(msg) from err

    async def async_get_forecast(
        self, start: datetime, end: datetime
    ) -> list[ForecastSample]:
        """Return forecast samples covering ``[start, end)``."""
        data = await self._fetch(start)
        samples = self.parse_response(data, self._rates)
        step = timedelta(minutes=CARBON_INTENSITY_SAMPLE_MINUTES)
        return [s for s in samples if s.timestamp < end and s.timestamp + step > start]

    async def async_validate_postcode(self) -> str:
        """Check the postcode resolves to a region and return its name."""
        data = await self._fetch(dt_util.utcnow())
        region = _region_payload(data)
        if not region.get("data"):
            msg = f"No forecast for postcode {self._outcode}"
            raise CarbonIntensityPostcodeError(msg)
        return region.get("shortname") or self._outcode

    @staticmethod
    def parse_response(
        data: dict[str, Any], rates: TouRates | None = None
    ) -> list[ForecastSample]:
        """Parse the JSON payload into sorted, de-duplicated samples."""
        rates = rates or TouRates()
        region = _region_payload(data)

        by_start: dict[datetime, ForecastSample] = {}
        for entry in region.get("data", []):
            sample = _parse_entry(entry, rates)
            if sample is not None and sample.timestamp not in by_start:
                by_start[sample.timestamp] = sample

        _LOGGER.debug(
            "Parsed %d forecast samples for region %s",
            len(by_start),
            region.get("shortname", "unknown"),
        )
        return [by_start[ts] for ts in sorted(by_start)]


def _region_payload(data: dict[str, Any]) -> dict[str, Any]:
    """
    Return the region object of a regional response.

    The postcode endpoint wraps the region in ``data``, either directly or
    as a one-element list depending on the route.
    """
    if not isinstance(data, dict):
        msg = "Malformed Carbon Intensity response"
        raise CarbonIntensityApiError(msg)
    if "error" in data:
        error = data["error"] or {}
        msg = f"Carbon Intensity error: {error.get('message', 'unknown')}"
        raise CarbonIntensityApiError(msg)

    region = data.get("data", {})
    if isinstance(region, list):
        region = region[0] if region else {}
    if not isinstance(region, dict):
        msg = "Malformed Carbon Intensity response"
        raise CarbonIntensityApiError(msg)
    return region


def _parse_entry(entry: dict[str, Any], rates: TouRates) -> ForecastSample | None:
    """Parse one half-hour entry, or None if it is unusable."""
    start = dt_util.parse_datetime(entry.get("from") or "")
    if start is None:
        _LOGGER.debug("Skipping entry without a start time: %s", entry)
        return None
    if start.tzinfo is None:
        start = start.replace(tzinfo=UTC)

    try:
        clean_pct = sum(
            float(fuel.get("perc", 0))
            for fuel in entry.get("generationmix", [])
            if fuel.get("fuel") in CLEAN_FUELS
        )
    except (ValueError, TypeError):
        _LOGGER.debug("Skipping entry with unparseable generation mix: %s", entry)
        return None

    index = str((entry.get("intensity") or {}).get("index", "")).lower()
    tier = INDEX_TO_TIER.get(index, PriceTier.MID)

    return ForecastSample(
        timestamp=start,
        clean_fraction=max(0.0, min(1.0, clean_pct / 100.0)),
        price_tier=tier,
        rate_per_kwh=rates.rate_for(tier),
    )
