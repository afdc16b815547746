"""POI Route Planner FastAPI Application.

Main entry point for the backend API server.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from poiroute.api import PlannerState, router
from poiroute.core.config import settings
from poiroute.models import ErrorKind, ServiceError

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)


def _error_response(status_code: int, kind: ErrorKind, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": {"kind": kind.value, "message": message},
        },
    )


def create_app(planner: PlannerState | None = None) -> FastAPI:
    """Build the application; ``planner`` overrides the default state."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        # Startup
        state = planner or PlannerState(settings)
        await state.start()
        app.state.planner = state
        yield
        # Shutdown
        await state.close()

    app = FastAPI(
        title="POI Route Planner API",
        description="POI acquisition and multi-stop route assembly",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Global exception handlers
    @app.exception_handler(ServiceError)
    async def service_exception_handler(request: Request, exc: ServiceError):
        """Handle errors raised on purpose by the services."""
        return _error_response(exc.http_status, exc.kind, exc.message)

    @app.exception_handler(RequestValidationError)
    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: Exception):
        """Handle request and Pydantic validation errors."""
        return _error_response(422, ErrorKind.VALIDATION_ERROR, str(exc))

    # Include API routes
    app.include_router(router, prefix="/api")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("poiroute.main:app", host="0.0.0.0", port=8000)
