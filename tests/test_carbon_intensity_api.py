"""Tests for the GridShift Carbon Intensity API client."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from unittest.mock import MagicMock

import aiohttp
import pytest
from homeassistant.core import HomeAssistant
from homeassistant.helpers.aiohttp_client import async_get_clientsession
from pytest_homeassistant_custom_component.test_util.aiohttp import (
    AiohttpClientMocker,
)

from custom_components.gridshift.carbon_intensity_api import (
    CarbonIntensityApiError,
    CarbonIntensityClient,
    CarbonIntensityPostcodeError,
    outcode,
)
from custom_components.gridshift.forecast_provider import (
    ForecastFetchError,
    ForecastNotConfiguredError,
)
from custom_components.gridshift.models import PriceTier, TouRates

START = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)
URL = (
    "https://api.carbonintensity.org.uk/regional/intensity/"
    "2026-03-02T12:00Z/fw48h/postcode/RG10"
)
JSON_HEADERS = {"Content-Type": "application/json"}


def _entry(start: str, end: str, index: str, mix: dict[str, float]) -> dict[str, Any]:
    return {
        "from": start,
        "to": end,
        "intensity": {"forecast": 100, "index": index},
        "generationmix": [{"fuel": fuel, "perc": perc} for fuel, perc in mix.items()],
    }


SAMPLE_RESPONSE: dict[str, Any] = {
    "data": [
        {
            "regionid": 12,
            "dnoregion": "SSE South",
            "shortname": "South England",
            "postcode": "RG10",
            "data": [
                _entry(
                    "2026-03-02T12:30Z",
                    "2026-03-02T13:00Z",
                    "high",
                    {"gas": 60.0, "coal": 5.0, "wind": 20.0, "nuclear": 15.0},
                ),
                _entry(
                    "2026-03-02T12:00Z",
                    "2026-03-02T12:30Z",
                    "very low",
                    {"gas": 10.0, "wind": 50.0, "solar": 25.0, "biomass": 10.0,
                     "hydro": 5.0},
                ),
                _entry(
                    "2026-03-02T13:00Z",
                    "2026-03-02T13:30Z",
                    "moderate",
                    {"gas": 45.0, "imports": 15.0, "wind": 40.0},
                ),
            ],
        }
    ]
}


def _make_client(postcode: str | None = "RG10 9XX") -> CarbonIntensityClient:
    """Create a client with a mock session."""
    session = MagicMock(spec=aiohttp.ClientSession)
    return CarbonIntensityClient(session, postcode)


# ---------------------------------------------------------------------------
# URL building
# ---------------------------------------------------------------------------


def test_outcode():
    """Only the outward part of the postcode is sent."""
    assert outcode("rg10 9xx") == "RG10"
    assert outcode(" SW1A ") == "SW1A"
    assert outcode("") == ""


def test_build_url():
    """The 48 hour forward forecast is requested for the outcode."""
    client = _make_client()
    assert client._build_url(START) == URL  # noqa: SLF001


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


def test_parse_response_sorted_and_mapped():
    """Entries are sorted, clean fuels summed and indices mapped to tiers."""
    samples = CarbonIntensityClient.parse_response(SAMPLE_RESPONSE)

    assert [s.timestamp for s in samples] == [
        datetime(2026, 3, 2, 12, 0, tzinfo=UTC),
        datetime(2026, 3, 2, 12, 30, tzinfo=UTC),
        datetime(2026, 3, 2, 13, 0, tzinfo=UTC),
    ]
    assert [s.clean_fraction for s in samples] == pytest.approx([0.9, 0.35, 0.4])
    assert [s.price_tier for s in samples] == [
        PriceTier.LOW,
        PriceTier.HIGH,
        PriceTier.MID,
    ]
    assert [s.rate_per_kwh for s in samples] == [0.12, 0.38, 0.22]


def test_parse_response_uses_configured_rates():
    """Sample rates come from the configured tariff."""
    rates = TouRates(low=0.05, mid=0.15, high=0.45)
    samples = CarbonIntensityClient.parse_response(SAMPLE_RESPONSE, rates)
    assert [s.rate_per_kwh for s in samples] == [0.05, 0.45, 0.15]


def test_parse_response_region_as_object():
    """Some routes return the region object directly."""
    data = {"data": SAMPLE_RESPONSE["data"][0]}
    assert len(CarbonIntensityClient.parse_response(data)) == 3


def test_parse_response_deduplicates_and_skips_bad_entries():
    """Duplicate start times keep the first entry; unusable entries are dropped."""
    entries = [
        _entry("2026-03-02T12:00Z", "2026-03-02T12:30Z", "low", {"wind": 70.0}),
        _entry("2026-03-02T12:00Z", "2026-03-02T12:30Z", "high", {"wind": 10.0}),
        _entry("not a date", "", "low", {"wind": 70.0}),
        {
            "from": "2026-03-02T12:30Z",
            "intensity": {"index": "unknown"},
            "generationmix": [{"fuel": "wind", "perc": "n/a"}],
        },
    ]
    samples = CarbonIntensityClient.parse_response({"data": {"data": entries}})

    assert len(samples) == 1
    assert samples[0].clean_fraction == pytest.approx(0.7)


def test_parse_response_unknown_index_is_mid():
    """An unrecognised intensity index is treated as MID."""
    entries = [_entry("2026-03-02T12:00Z", "", "extreme", {"solar": 30.0})]
    samples = CarbonIntensityClient.parse_response({"data": {"data": entries}})
    assert samples[0].price_tier is PriceTier.MID


def test_parse_response_error_payload():
    """An error object in the payload raises."""
    with pytest.raises(CarbonIntensityApiError, match="Invalid postcode"):
        CarbonIntensityClient.parse_response(
            {"error": {"code": "400 Bad Request", "message": "Invalid postcode"}}
        )


def test_parse_response_malformed():
    """A payload without a region object raises."""
    with pytest.raises(CarbonIntensityApiError):
        CarbonIntensityClient.parse_response({"data": "nope"})


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------


async def test_missing_postcode_is_not_configured():
    """Without a postcode the client refuses to fetch."""
    client = _make_client(postcode=None)

    with pytest.raises(ForecastNotConfiguredError):
        await client.async_get_forecast(START, START)


async def test_connection_error_is_fetch_error():
    """Connection failures surface as a forecast fetch error."""
    client = _make_client()
    session = client._session  # noqa: SLF001
    session.get.side_effect = aiohttp.ClientConnectionError("down")

    with pytest.raises(CarbonIntensityApiError) as exc_info:
        await client.async_get_forecast(START, START)

    assert isinstance(exc_info.value, ForecastFetchError)


async def test_get_forecast_filters_to_range(
    hass: HomeAssistant, aioclient_mock: AiohttpClientMocker
) -> None:
    """Only samples overlapping the requested range are returned."""
    aioclient_mock.get(URL, json=SAMPLE_RESPONSE, headers=JSON_HEADERS)
    client = CarbonIntensityClient(async_get_clientsession(hass), "RG10")

    samples = await client.async_get_forecast(
        START, datetime(2026, 3, 2, 13, 0, tzinfo=UTC)
    )

    assert [s.timestamp.minute for s in samples] == [0, 30]


async def test_bad_request_is_postcode_error(
    hass: HomeAssistant, aioclient_mock: AiohttpClientMocker
) -> None:
    """HTTP 400 means the postcode was rejected."""
    aioclient_mock.get(URL, status=400, text="bad postcode")
    client = CarbonIntensityClient(async_get_clientsession(hass), "RG10")

    with pytest.raises(CarbonIntensityPostcodeError):
        await client.async_get_forecast(START, START)


async def test_server_error(
    hass: HomeAssistant, aioclient_mock: AiohttpClientMocker
) -> None:
    """Other HTTP errors raise a generic API error."""
    aioclient_mock.get(URL, status=503, text="maintenance")
    client = CarbonIntensityClient(async_get_clientsession(hass), "RG10")

    with pytest.raises(CarbonIntensityApiError, match="503"):
        await client.async_get_forecast(START, START)


async def test_non_json_response(
    hass: HomeAssistant, aioclient_mock: AiohttpClientMocker
) -> None:
    """An HTML error page is not parsed."""
    aioclient_mock.get(
        URL, text="<html></html>", headers={"Content-Type": "text/html"}
    )
    client = CarbonIntensityClient(async_get_clientsession(hass), "RG10")

    with pytest.raises(CarbonIntensityApiError, match="content type"):
        await client.async_get_forecast(START, START)
