"""
Weather endpoints.

  GET /weather/current?city=London    current conditions (15 min cache)
  GET /weather/forecast?city=London   5 day / 3 hour forecast (60 min cache)
  GET /weather/history                10 most recently searched cities
  GET /weather/cities                 every known city, most-searched first

Lookups delegate to app.state.weather_engine. Domain errors propagate to the
handlers registered in main.py, which map them to status codes.
"""

from fastapi import APIRouter, HTTPException, Query, Request

router = APIRouter(prefix="/weather", tags=["weather"])


def _city_param(city: str) -> str:
    name = city.strip()
    if not name:
        raise HTTPException(status_code=422, detail="City name must not be blank.")
    return name


@router.get("/current")
async def current_weather(
    request: Request,
    city: str = Query(..., min_length=1, max_length=100, description="City name"),
) -> dict:
    engine = request.app.state.weather_engine
    view = await engine.get_current_weather(_city_param(city))
    return {
        "success": True,
        "data": view.model_dump(mode="json"),
        "requestId": request.state.request_id,
    }


@router.get("/forecast")
async def forecast(
    request: Request,
    city: str = Query(..., min_length=1, max_length=100, description="City name"),
) -> dict:
    engine = request.app.state.weather_engine
    view = await engine.get_forecast(_city_param(city))
    return {
        "success": True,
        "data": view.model_dump(mode="json"),
        "requestId": request.state.request_id,
    }


@router.get("/history")
async def search_history(
    request: Request,
    limit: int = Query(10, ge=1, le=50),
) -> dict:
    engine = request.app.state.weather_engine
    entries = await engine.get_search_history(limit)
    return {
        "success": True,
        "data": {
            "results": [e.model_dump(mode="json") for e in entries],
            "count": len(entries),
        },
        "requestId": request.state.request_id,
    }


@router.get("/cities")
async def list_cities(request: Request) -> dict:
    engine = request.app.state.weather_engine
    cities = await engine.list_cities()
    return {
        "success": True,
        "data": {
            "results": [c.model_dump(mode="json") for c in cities],
            "count": len(cities),
        },
        "requestId": request.state.request_id,
    }
