"""
OpenWeatherMap client: current conditions and 5 day / 3 hour forecast by city name.

Endpoints (units fixed to metric):
  GET {base}/weather?q=<city>&appid=<key>&units=metric
  GET {base}/forecast?q=<city>&appid=<key>&units=metric

Error translation:
  404            -> NotFoundError
  401            -> InvalidConfigurationError
  anything else  -> UpstreamError (5xx, 429, network, timeout, malformed JSON)

No retries here. On-demand lookups fall back to stale cache instead, and the
refresh job tolerates per-city failure.

Only the fields the cache stores are parsed. /weather returns roughly:
  {
    "coord":   {"lat": 51.51, "lon": -0.13},
    "weather": [{"id": 803, "main": "Clouds", "description": "broken clouds", "icon": "04d"}],
    "main":    {"temp": 15.0, "feels_like": 14.2, "humidity": 60, "pressure": 1012},
    "wind":    {"speed": 4.1, "deg": 240},
    "sys":     {"country": "GB", "sunrise": 1700000000, "sunset": 1700030000},
    "name":    "London"
  }
/forecast returns {"city": {"name", "country", "coord"}, "list": [...]} where each
list item has dt, main, weather, wind and optional rain.3h / pop (0-1).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import httpx

from services.forecast_api.errors import (
    InvalidConfigurationError,
    NotFoundError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL = "https://api.openweathermap.org/data/2.5"
_DEFAULT_TIMEOUT_S = 8.0


@dataclass(frozen=True)
class ProviderCurrent:
    city_name: str
    country: str | None
    latitude: float
    longitude: float
    temperature: float
    feels_like: float
    humidity: int
    pressure: int
    wind_speed: float
    wind_direction: int | None
    condition_code: int
    condition: str
    description: str
    icon: str
    sunrise: datetime
    sunset: datetime


@dataclass(frozen=True)
class ForecastPoint:
    forecast_time: datetime
    temperature: float
    humidity: int
    pressure: int
    wind_speed: float
    wind_direction: int | None
    condition: str
    description: str
    icon: str
    rain_volume: float = 0.0
    probability: float = 0.0


@dataclass(frozen=True)
class ProviderForecast:
    city_name: str
    country: str | None
    latitude: float
    longitude: float
    entries: list[ForecastPoint] = field(default_factory=list)


def _from_epoch(seconds: int | float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def _primary_condition(item: dict[str, Any]) -> dict[str, Any]:
    weather_list = item.get("weather") or [{}]
    return weather_list[0]


def _wind_direction(wind: dict[str, Any]) -> int | None:
    deg = wind.get("deg")
    return int(deg) if deg is not None else None


def parse_current(payload: dict[str, Any]) -> ProviderCurrent:
    """Build a ProviderCurrent from a /weather response. Raises UpstreamError if malformed."""
    try:
        main = payload["main"]
        sys_block = payload.get("sys", {})
        wind = payload.get("wind", {})
        primary = _primary_condition(payload)
        return ProviderCurrent(
            city_name=payload["name"],
            country=sys_block.get("country") or None,
            latitude=float(payload["coord"]["lat"]),
            longitude=float(payload["coord"]["lon"]),
            temperature=float(main["temp"]),
            feels_like=float(main.get("feels_like", main["temp"])),
            humidity=int(main["humidity"]),
            pressure=int(main["pressure"]),
            wind_speed=float(wind.get("speed", 0.0)),
            wind_direction=_wind_direction(wind),
            condition_code=int(primary.get("id", 800)),
            condition=primary.get("main", "Unknown"),
            description=primary.get("description", ""),
            icon=primary.get("icon", ""),
            sunrise=_from_epoch(sys_block["sunrise"]),
            sunset=_from_epoch(sys_block["sunset"]),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise UpstreamError(f"Malformed current weather payload: {exc!r}") from exc


def _parse_forecast_item(item: dict[str, Any]) -> ForecastPoint:
    main = item["main"]
    wind = item.get("wind", {})
    primary = _primary_condition(item)
    rain = item.get("rain") or {}
    pop = item.get("pop")
    return ForecastPoint(
        forecast_time=_from_epoch(item["dt"]),
        temperature=float(main["temp"]),
        humidity=int(main["humidity"]),
        pressure=int(main["pressure"]),
        wind_speed=float(wind.get("speed", 0.0)),
        wind_direction=_wind_direction(wind),
        condition=primary.get("main", "Unknown"),
        description=primary.get("description", ""),
        icon=primary.get("icon", ""),
        rain_volume=float(rain.get("3h", 0.0)),
        # Provider sends a 0-1 fraction
        probability=round(float(pop) * 100, 1) if pop else 0.0,
    )


def parse_forecast(payload: dict[str, Any]) -> ProviderForecast:
    """Build a ProviderForecast from a /forecast response. Raises UpstreamError if malformed."""
    try:
        city = payload["city"]
        entries = [_parse_forecast_item(item) for item in payload["list"]]
        return ProviderForecast(
            city_name=city["name"],
            country=city.get("country") or None,
            latitude=float(city["coord"]["lat"]),
            longitude=float(city["coord"]["lon"]),
            entries=sorted(entries, key=lambda e: e.forecast_time),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise UpstreamError(f"Malformed forecast payload: {exc!r}") from exc


class OpenWeatherClient:
    """
    Thin async OpenWeatherMap client.

    Usage:
        client = OpenWeatherClient(api_key="...")
        current = await client.fetch_current("London")
        forecast = await client.fetch_forecast("London")
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = _DEFAULT_BASE_URL,
        timeout_s: float = _DEFAULT_TIMEOUT_S,
    ) -> None:
        """
        Args:
            api_key:   OpenWeatherMap API key (OPENWEATHERMAP_API_KEY env var).
            base_url:  API root, overridable for staging proxies.
            timeout_s: Per-request timeout; a hung provider surfaces as UpstreamError.
        """
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s

    async def fetch_current(self, city_name: str) -> ProviderCurrent:
        raw = await self._get("weather", city_name)
        return parse_current(raw)

    async def fetch_forecast(self, city_name: str) -> ProviderForecast:
        raw = await self._get("forecast", city_name)
        return parse_forecast(raw)

    async def _get(self, endpoint: str, city_name: str) -> dict[str, Any]:
        if not self._api_key:
            raise InvalidConfigurationError("OpenWeatherMap API key is not configured")

        try:
            async with httpx.AsyncClient(timeout=self._timeout_s) as client:
                resp = await client.get(
                    f"{self._base_url}/{endpoint}",
                    params={
                        "q": city_name,
                        "appid": self._api_key,
                        "units": "metric",
                    },
                )
                resp.raise_for_status()
                return resp.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 404:
                raise NotFoundError(f'City "{city_name}" not found') from exc
            if status == 401:
                raise InvalidConfigurationError("Weather API key is invalid") from exc
            logger.warning(
                "OpenWeatherMap /%s returned %d for city=%r",
                endpoint,
                status,
                city_name,
            )
            raise UpstreamError(f"OpenWeatherMap returned {status}") from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(
                f"OpenWeatherMap /{endpoint} request failed: {exc.__class__.__name__}"
            ) from exc
        except ValueError as exc:
            # resp.json() on a non-JSON body
            raise UpstreamError(f"OpenWeatherMap /{endpoint} returned invalid JSON") from exc
