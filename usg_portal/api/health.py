"""
Health check endpoint for load balancers and monitoring.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from usg_portal.config import get_settings
from usg_portal.models.base import get_db

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Report service and database status.

    A failing database answers "degraded" rather than an error so
    the caller can tell a running process from a dead one.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError:
        db_status = "unhealthy"

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "service": "usg-portal",
        "version": get_settings().APP_VERSION,
        "database": db_status,
    }
