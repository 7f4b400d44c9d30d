import logging
import sys

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DataError, IntegrityError

# Import all models to ensure Base.metadata is populated before create_all
from budget_backend.models import RecurringRule, Transaction  # noqa: F401

from budget_backend.api.v1.router import api_router
from budget_backend.core.config import settings
from budget_backend.db.session import engine
from budget_backend.db.init_db import init_database

logger = logging.getLogger(__name__)


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        stream=sys.stdout,
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
    )


def create_app() -> FastAPI:
    tags_metadata = [
        {"name": "recurring", "description": "Recurring rules and the recurring transaction scheduler"},
    ]

    configure_logging()
    try:
        settings.validate_security()
    except ValueError as e:
        logger.error("[SECURITY WARNING] %s", e)

    app = FastAPI(
        title="Budget Backend",
        version="1.0.0",
        description="Recurring transaction scheduling for the budgeting application",
        openapi_url="/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=tags_metadata,
        redirect_slashes=False,
    )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        """Handle database integrity errors (unique constraints, foreign keys)"""
        error_msg = str(exc.orig) if exc.orig else str(exc)
        if "unique" in error_msg.lower():
            detail = "The record already exists."
            status_code = 409
        elif "foreign key" in error_msg.lower():
            detail = "The operation conflicts with related records."
            status_code = 400
        else:
            detail = "Database error."
            status_code = 400

        logger.warning("Integrity error at %s: %s - %s", request.url.path, detail, error_msg)
        return JSONResponse(status_code=status_code, content={"detail": detail})

    @app.exception_handler(DataError)
    async def data_error_handler(request: Request, exc: DataError):
        """Handle database data errors (invalid types, values too long)"""
        return JSONResponse(
            status_code=400,
            content={"detail": "Invalid data (wrong type or value too long)."},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Flatten pydantic validation errors into readable messages"""
        errors = []
        for error in exc.errors():
            field = ".".join(str(x) for x in error["loc"] if x != "body")
            errors.append(f"{field}: {error['msg']}")

        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": errors},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error at %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal Server Error. Please contact support."},
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH", "HEAD"],
        allow_headers=["*"],
        max_age=3600,
    )

    @app.on_event("startup")
    async def on_startup() -> None:
        await init_database(engine)

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok"}

    app.include_router(api_router, prefix=settings.API_V1_STR)
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("budget_backend.main:app", host="0.0.0.0", port=8000, reload=False)
