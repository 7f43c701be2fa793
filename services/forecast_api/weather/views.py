"""
Outbound view objects handed to the HTTP layer.

Built from ORM rows (or anything with the same attributes) via the
from_* constructors; routers serialize them with model_dump(mode="json").
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class WeatherView(BaseModel):
    city_name: str
    country: Optional[str]
    temperature: float
    feels_like: float
    humidity: int
    wind_speed: float
    wind_direction: Optional[int]
    weather_condition: str
    pressure: int
    sunrise: datetime
    sunset: datetime
    description: str
    icon: str
    latitude: float
    longitude: float
    last_updated: datetime

    @classmethod
    def from_rows(cls, city: Any, snapshot: Any) -> WeatherView:
        return cls(
            city_name=city.name,
            country=city.country,
            temperature=snapshot.temperature,
            feels_like=snapshot.feels_like,
            humidity=snapshot.humidity,
            wind_speed=snapshot.wind_speed,
            wind_direction=snapshot.wind_direction,
            weather_condition=snapshot.weather_condition,
            pressure=snapshot.pressure,
            sunrise=snapshot.sunrise,
            sunset=snapshot.sunset,
            description=snapshot.description,
            icon=snapshot.icon,
            latitude=city.latitude,
            longitude=city.longitude,
            last_updated=snapshot.updated_at,
        )


class ForecastItemView(BaseModel):
    forecast_time: datetime
    temperature: float
    humidity: int
    wind_speed: float
    wind_direction: Optional[int]
    pressure: int
    weather_condition: str
    weather_description: str
    rain_volume: float
    probability: float
    icon: str


class ForecastView(BaseModel):
    city_name: str
    country: Optional[str]
    forecasts: list[ForecastItemView]

    @classmethod
    def from_rows(cls, city: Any, entries: list[Any]) -> ForecastView:
        return cls(
            city_name=city.name,
            country=city.country,
            forecasts=[
                ForecastItemView(
                    forecast_time=e.forecast_time,
                    temperature=e.temperature,
                    humidity=e.humidity,
                    wind_speed=e.wind_speed,
                    wind_direction=e.wind_direction,
                    pressure=e.pressure,
                    weather_condition=e.weather_condition,
                    weather_description=e.weather_description,
                    rain_volume=e.rain_volume or 0.0,
                    probability=e.probability or 0.0,
                    icon=e.icon,
                )
                for e in entries
            ],
        )


class SearchHistoryView(BaseModel):
    city_name: str
    search_count: int
    last_searched: Optional[datetime]


class CityView(BaseModel):
    id: int
    name: str
    country: Optional[str]
    latitude: float
    longitude: float
    search_count: int
    last_searched: Optional[datetime]

    @classmethod
    def from_row(cls, city: Any) -> CityView:
        return cls(
            id=city.id,
            name=city.name,
            country=city.country,
            latitude=city.latitude,
            longitude=city.longitude,
            search_count=city.search_count,
            last_searched=city.last_searched,
        )
