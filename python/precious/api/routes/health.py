"""Health check endpoints."""

from datetime import UTC, datetime

from fastapi import APIRouter, Request

from precious.responses import success_response

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Liveness check endpoint.

    Returns 200 if the process is running.
    Does not check database or other dependencies.
    """
    return success_response(
        {
            "status": "ok",
            "timestamp": datetime.now(UTC).isoformat(),
            "version": request.app.version,
        }
    )
