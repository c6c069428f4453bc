"""
Dealer Back-Office Core - leads, appointments, bonuses and recruiting
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backoffice.core.config import settings
from backoffice.core.errors import (
    BackofficeError,
    CommitFailed,
    ConcurrentModification,
    IllegalTransition,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from backoffice.api.v1 import leads, appointments, notifications, staff, recruiting
from backoffice.services.messaging_client import close_whatsapp_client

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS_CODES = (
    (NotFound, 404),
    (PermissionDenied, 403),
    (ValidationError, 400),
    (ConcurrentModification, 409),
    (IllegalTransition, 409),
    (CommitFailed, 503),
)

app = FastAPI(
    title="Back-Office Core API",
    description="Lead cascade, bonus calculation and recruiting pipeline",
    version="1.0.0",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BackofficeError)
async def backoffice_error_handler(request: Request, exc: BackofficeError):
    status_code = 500
    for error_class, code in ERROR_STATUS_CODES:
        if isinstance(exc, error_class):
            status_code = code
            break
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.__class__.__name__, "detail": exc.message}
    )


@app.on_event("shutdown")
async def close_clients():
    await close_whatsapp_client()


# API routes
app.include_router(leads.router, prefix="/v1/leads", tags=["leads"])
app.include_router(appointments.router, prefix="/v1/appointments", tags=["appointments"])
app.include_router(notifications.router, prefix="/v1/notifications", tags=["notifications"])
app.include_router(staff.router, prefix="/v1/staff", tags=["staff"])
app.include_router(recruiting.router, prefix="/v1/recruiting", tags=["recruiting"])


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": settings.APP_NAME}


@app.get("/")
async def root():
    return {
        "service": settings.APP_NAME,
        "version": "1.0.0",
        "docs": "/docs"
    }
