"""
Onboarding PDF Service - Main FastAPI Application
Serves fillable onboarding forms, stores wizard progress and signed
background check documents, and builds merged PDF deliverables.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from onboarding.config import get_settings, get_cors_origins
from onboarding.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler,
)
from onboarding.utils.logging import setup_logging, RequestIdMiddleware

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    setup_logging(
        environment=settings.environment,
        level=logging.DEBUG if settings.debug else logging.INFO,
    )
    logger.info(f"Starting Onboarding PDF Service v{VERSION} ({settings.environment})")
    yield
    logger.info("Shutting down Onboarding PDF Service")


app = FastAPI(
    title="Onboarding PDF Service",
    description="""Backend for the onboarding wizard's PDF documents.

## Authentication

Use `Authorization: Bearer <supabase_access_token>`, or the session cookie
for browser requests. Privileged downloads check the caller's role.
""",
    version=VERSION,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "background-checks", "description": "Stored background check documents"},
        {"name": "form-progress", "description": "Onboarding wizard progress and packets"},
        {"name": "forms", "description": "Fillable form templates"},
    ],
)


from onboarding.routers import background_checks, form_progress, forms

# Middleware
app.add_middleware(RequestIdMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "Content-Disposition"],
)

# Exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(ValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Routers
app.include_router(background_checks.router)
app.include_router(form_progress.router)
app.include_router(forms.router)


# Health check
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": VERSION}
