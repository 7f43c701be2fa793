"""
SQLAlchemy DeclarativeBase models for the weather cache.

Ownership:
  - cities            -- City Registry (identity + popularity counters)
  - weather_snapshots -- one live row per city, overwritten in place
  - forecast_entries  -- the current forecast horizon per city, replaced as a set
  - search_history    -- plain per-name tally kept next to the city counter

Schema is created at startup (see db.engine.create_schema); there is no
separate migration tool.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class City(Base):
    """
    Durable identity of a searched city.

    name is the normalized natural key (trimmed, case-folded). country is NULL
    until the provider has told us which country the city is in.
    """

    __tablename__ = "cities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    country: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    latitude: Mapped[float] = mapped_column(Float, default=0.0)
    longitude: Mapped[float] = mapped_column(Float, default=0.0)
    search_count: Mapped[int] = mapped_column(Integer, default=0, index=True)
    last_searched: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    # Stamped when the forecast set is replaced; forecast freshness reads this.
    forecast_refreshed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class WeatherSnapshot(Base):
    """Most recent current-conditions reading for a city. updated_at drives freshness."""

    __tablename__ = "weather_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    city_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("cities.id", ondelete="CASCADE"), unique=True
    )
    temperature: Mapped[float] = mapped_column(Float)
    feels_like: Mapped[float] = mapped_column(Float)
    humidity: Mapped[int] = mapped_column(Integer)
    wind_speed: Mapped[float] = mapped_column(Float)
    wind_direction: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    pressure: Mapped[int] = mapped_column(Integer)
    condition_code: Mapped[int] = mapped_column(Integer)
    weather_condition: Mapped[str] = mapped_column(String(64))
    description: Mapped[str] = mapped_column(String(255))
    icon: Mapped[str] = mapped_column(String(16))
    sunrise: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    sunset: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class ForecastEntry(Base):
    """One forecast step. The full set for a city is deleted and reinserted together."""

    __tablename__ = "forecast_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    city_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("cities.id", ondelete="CASCADE"), index=True
    )
    forecast_time: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    temperature: Mapped[float] = mapped_column(Float)
    humidity: Mapped[int] = mapped_column(Integer)
    wind_speed: Mapped[float] = mapped_column(Float)
    wind_direction: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    pressure: Mapped[int] = mapped_column(Integer)
    weather_condition: Mapped[str] = mapped_column(String(64))
    weather_description: Mapped[str] = mapped_column(String(255))
    rain_volume: Mapped[float] = mapped_column(Float, default=0.0)
    # 0-100
    probability: Mapped[float] = mapped_column(Float, default=0.0)
    icon: Mapped[str] = mapped_column(String(16))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class SearchHistory(Base):
    """Per-name search tally. Updated in the same transaction as City.search_count."""

    __tablename__ = "search_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    city_name: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    search_count: Mapped[int] = mapped_column(Integer, default=0)
    last_searched: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
