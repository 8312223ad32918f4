"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from statutory_payroll.api.routes import health_router, rules_router
from statutory_payroll.config import configure_logging, get_settings
from statutory_payroll.database import create_schema, dispose_db, init_db
from statutory_payroll.errors import (
    ConcurrentModificationError,
    InvalidInputError,
    InvalidRuleSetError,
    RuleSetNotFoundError,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    configure_logging()
    engine, _ = init_db()
    await create_schema(engine)
    yield
    await dispose_db()


def _error(status_code: int, detail: str, code: str, errors: list[str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "code": code, "errors": errors or []},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    app = FastAPI(
        title="Statutory Payroll API",
        description="Statutory rule administration and deduction preview",
        version=settings.engine_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InvalidRuleSetError)
    async def invalid_rule_set_handler(
        request: Request, exc: InvalidRuleSetError
    ) -> JSONResponse:
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Rule set is invalid",
            "INVALID_RULE_SET",
            exc.errors,
        )

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(
        request: Request, exc: InvalidInputError
    ) -> JSONResponse:
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc), "INVALID_INPUT")

    @app.exception_handler(ConcurrentModificationError)
    async def conflict_handler(
        request: Request, exc: ConcurrentModificationError
    ) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, str(exc), "CONCURRENT_MODIFICATION")

    @app.exception_handler(RuleSetNotFoundError)
    async def not_found_handler(
        request: Request, exc: RuleSetNotFoundError
    ) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, str(exc), "RULE_SET_NOT_FOUND")

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred",
            "INTERNAL_ERROR",
        )

    app.include_router(health_router)
    app.include_router(rules_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
