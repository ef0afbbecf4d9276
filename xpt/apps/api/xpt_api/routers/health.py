"""Health check endpoint."""

import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import text
from sqlalchemy.orm import Session

from xpt_api.db.models import utc_now
from xpt_api.db.session import get_db
from xpt_api.schemas import HealthResponse

router = APIRouter()
logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"


def check_database(db: Session) -> str:
    """Check database connectivity.

    Returns:
        str: "up" if healthy, error message otherwise
    """
    try:
        db.execute(text("SELECT 1"))
        return "up"
    except Exception as e:
        logger.error("health.database.down", extra={"error_type": type(e).__name__})
        return f"down: {str(e)[:50]}"


@router.get("/health", response_model=HealthResponse)
def health_check(response: Response, db: Session = Depends(get_db)) -> HealthResponse:
    """
    Health check endpoint.

    Returns 503 when the database is unreachable.
    """
    response.headers["Cache-Control"] = "no-store"
    services = {"api": "up", "database": check_database(db)}

    if services["database"] != "up":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="error", version=API_VERSION, timestamp=utc_now(), services=services)

    return HealthResponse(status="ok", version=API_VERSION, timestamp=utc_now(), services=services)
