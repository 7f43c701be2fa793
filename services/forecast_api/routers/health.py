"""Health check endpoint."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict:
    refresh_job = getattr(request.app.state, "refresh_job", None)
    return {
        "success": True,
        "data": {
            "status": "healthy",
            "version": request.app.state.settings.app_version,
            "refreshJob": refresh_job.state.value if refresh_job is not None else "disabled",
        },
        "requestId": request.state.request_id,
    }
