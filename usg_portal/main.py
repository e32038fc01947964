"""
USG Portal Issuance Service: FastAPI Application.

This is the entry point for the application. All routers and
exception handlers are registered here.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm.exc import StaleDataError
from starlette.exceptions import HTTPException as StarletteHTTPException

from usg_portal.config import get_settings
from usg_portal.exceptions import PortalError
from usg_portal.logging_config import configure_logging
from usg_portal.api.health import router as health_router
from usg_portal.api.issuances import router as issuances_router
from usg_portal.api.comments import router as comments_router
from usg_portal.api.admin_issuances import router as admin_issuances_router
from usg_portal.api.audit_logs import router as audit_logs_router
from usg_portal.api.departments import router as departments_router
from usg_portal.api.reports import router as reports_router

settings = get_settings()
configure_logging()

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Issuance workflow service for the university student government portal",
)


# --- Exception Handlers ---

@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, **exc.to_dict()},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"][1:]),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": "Validation failed",
            "code": "VALIDATION_ERROR",
            "errors": errors,
        },
    )


@app.exception_handler(StaleDataError)
async def stale_data_handler(request: Request, exc: StaleDataError):
    logger.warning("Concurrent modification on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=409,
        content={
            "success": False,
            "message": "Resource was modified by another request. Reload and retry.",
            "code": "CONCURRENT_MODIFICATION",
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": str(exc) if settings.DEBUG else "Internal server error",
            "code": "INTERNAL_ERROR",
        },
    )


# Register routers
app.include_router(health_router)
app.include_router(issuances_router)
app.include_router(comments_router)
app.include_router(admin_issuances_router)
app.include_router(audit_logs_router)
app.include_router(departments_router)
app.include_router(reports_router)
