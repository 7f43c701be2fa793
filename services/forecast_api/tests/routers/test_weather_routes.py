"""
Tests for the HTTP surface (routers/weather.py, routers/health.py, main.py
exception handlers).

The app runs without its lifespan; app.state.weather_engine is an engine over
in-memory fakes (see conftest.py).
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from services.forecast_api.errors import InvalidConfigurationError, PersistenceError
from services.forecast_api.jobs.refresh_popular import JobState
from services.forecast_api.tests.helpers.fakes import make_current, make_forecast


class TestCurrentWeatherRoute:
    @pytest.mark.asyncio
    async def test_success_envelope(self, client, provider):
        provider.current["london"] = make_current(temperature=15.0)

        resp = await client.get("/weather/current", params={"city": "London"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["data"]["city_name"] == "london"
        assert body["data"]["temperature"] == 15.0
        assert body["data"]["country"] == "GB"
        assert body["requestId"] == resp.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_echoes_request_id(self, client, provider):
        provider.current["london"] = make_current()

        resp = await client.get(
            "/weather/current", params={"city": "london"}, headers={"X-Request-ID": "req-123"}
        )

        assert resp.headers["X-Request-ID"] == "req-123"
        assert resp.json()["requestId"] == "req-123"

    @pytest.mark.asyncio
    async def test_unknown_city_is_404(self, client):
        resp = await client.get("/weather/current", params={"city": "atlantis"})

        assert resp.status_code == 404
        body = resp.json()
        assert body["success"] is False
        assert body["error"]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_missing_city_param_is_422(self, client):
        resp = await client.get("/weather/current")

        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_blank_city_is_422(self, client):
        resp = await client.get("/weather/current", params={"city": "   "})

        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_overlong_city_is_422(self, client):
        resp = await client.get("/weather/current", params={"city": "x" * 101})

        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_invalid_configuration_is_400(self, app, client):
        engine = AsyncMock()
        engine.get_current_weather = AsyncMock(
            side_effect=InvalidConfigurationError("Weather API key is invalid")
        )
        app.state.weather_engine = engine

        resp = await client.get("/weather/current", params={"city": "london"})

        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "INVALID_CONFIGURATION"

    @pytest.mark.asyncio
    async def test_persistence_error_is_500_without_detail(self, app, client):
        engine = AsyncMock()
        engine.get_current_weather = AsyncMock(
            side_effect=PersistenceError("snapshot read failed: OperationalError")
        )
        app.state.weather_engine = engine

        resp = await client.get("/weather/current", params={"city": "london"})

        assert resp.status_code == 500
        body = resp.json()
        assert body["error"]["code"] == "INTERNAL_ERROR"
        assert "OperationalError" not in body["error"]["message"]


class TestForecastRoute:
    @pytest.mark.asyncio
    async def test_success_envelope(self, client, provider):
        provider.forecast["london"] = make_forecast(count=40)

        resp = await client.get("/weather/forecast", params={"city": "London"})

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["city_name"] == "london"
        assert len(data["forecasts"]) == 40
        assert data["forecasts"][0]["probability"] == 40.0

    @pytest.mark.asyncio
    async def test_unknown_city_is_404(self, client):
        resp = await client.get("/weather/forecast", params={"city": "atlantis"})

        assert resp.status_code == 404


class TestHistoryAndCities:
    @pytest.mark.asyncio
    async def test_history_lists_recent_searches(self, client, provider, clock):
        for name in ("london", "paris"):
            provider.current[name] = make_current(city_name=name.title())
            await client.get("/weather/current", params={"city": name})
            clock.advance(minutes=1)

        resp = await client.get("/weather/history")

        data = resp.json()["data"]
        assert data["count"] == 2
        assert [r["city_name"] for r in data["results"]] == ["paris", "london"]

    @pytest.mark.asyncio
    async def test_cities_by_popularity(self, client, registry):
        registry.add("london", search_count=1)
        registry.add("paris", search_count=9)

        resp = await client.get("/weather/cities")

        results = resp.json()["data"]["results"]
        assert [c["name"] for c in results] == ["paris", "london"]


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_without_job(self, client):
        resp = await client.get("/health")

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["status"] == "healthy"
        assert data["refreshJob"] == "disabled"

    @pytest.mark.asyncio
    async def test_health_reports_job_state(self, app, client):
        job = AsyncMock()
        job.state = JobState.RUNNING
        app.state.refresh_job = job

        resp = await client.get("/health")

        assert resp.json()["data"]["refreshJob"] == "running"

    @pytest.mark.asyncio
    async def test_unknown_route_is_404_envelope(self, client):
        resp = await client.get("/nope")

        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOT_FOUND"
