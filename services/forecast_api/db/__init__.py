"""
SQLAlchemy async database module.

Re-exports engine, session, and model utilities for the API process and the
standalone refresh job.
"""

from services.forecast_api.db.engine import (
    create_engine,
    create_schema,
    create_session_factory,
    standalone_session_factory,
)
from services.forecast_api.db.session import persistence_scope
from services.forecast_api.db.models import (
    Base,
    City,
    ForecastEntry,
    SearchHistory,
    WeatherSnapshot,
)

__all__ = [
    "create_engine",
    "create_schema",
    "create_session_factory",
    "standalone_session_factory",
    "persistence_scope",
    "Base",
    "City",
    "ForecastEntry",
    "SearchHistory",
    "WeatherSnapshot",
]
