"""
Weather cache package.

OpenWeatherMap lookups backed by PostgreSQL rows: current conditions are
fresh for 15 minutes, forecasts for 60. When the provider fails, whatever
is cached is served instead.
"""

from services.forecast_api.weather.client import OpenWeatherClient
from services.forecast_api.weather.engine import WeatherLookupEngine, build_engine
from services.forecast_api.weather.popularity import PopularityTracker
from services.forecast_api.weather.registry import CityRegistry, normalize_city_name
from services.forecast_api.weather.store import WeatherCacheStore

__all__ = [
    "OpenWeatherClient",
    "WeatherLookupEngine",
    "build_engine",
    "PopularityTracker",
    "CityRegistry",
    "normalize_city_name",
    "WeatherCacheStore",
]
