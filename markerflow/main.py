"""
FastAPI Application — Entry Point

Document pipeline API: upload → markers → embeddings, with cascade delete.

Architecture:
  - All routes are versioned under /api/v1/
  - Services (store, registry, cache, embedding provider) are built once per
    app in create_app() and stored on app.state
  - Every MarkerflowError is returned as a structured ErrorResponse with the
    status code the error class declares
  - Storage directories are created at startup; the local embedding model is
    optionally warmed up

Middleware stack:
  1. CORS — open in development, closed otherwise
  2. Request ID + structured request logging
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from markerflow.api.v1.artifacts import router as artifacts_router
from markerflow.api.v1.users import router as users_router
from markerflow.core.config import Settings, get_settings
from markerflow.core.errors import MarkerflowError
from markerflow.schemas.pipeline import ErrorDetail, ErrorResponse
from markerflow.services.container import Services, build_services

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Application lifespan — startup / shutdown hooks
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    services: Services = app.state.services
    settings = services.settings

    services.store.ensure_dirs()
    logger.info(
        "Starting markerflow | env=%s data_root=%s strategies=%s dims=%d",
        settings.app_env, settings.data_root.resolve(),
        services.provider.strategy_names, services.provider.dimensions,
    )

    if settings.embedding_warmup:
        ready = await services.provider.warmup()
        logger.info("Embedding warmup: %s", ready)

    yield

    logger.info("Shutting down markerflow")


def _request_id(request: Request) -> str:
    """Id assigned by the logging middleware, else the client header, else a new one."""
    return (
        getattr(request.state, "request_id", None)
        or request.headers.get("X-Request-ID")
        or str(uuid.uuid4())
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    settings = settings or (services.settings if services else get_settings())

    app = FastAPI(
        title="markerflow",
        description="Upload documents, derive marker records and embeddings, cascade-delete derived artifacts.",
        version="1.0.0",
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url=None,
        openapi_url="/api/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.services = services or build_services(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.app_env == "development" else [],
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    # ----------------------------------------------------------------
    # Request ID + structured logging middleware
    # ----------------------------------------------------------------

    @app.middleware("http")
    async def request_id_and_logging(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "HTTP %s %s %d %.1fms",
            request.method, request.url.path, response.status_code, duration_ms,
        )
        return response

    # ----------------------------------------------------------------
    # Exception handlers — uniform structured error responses
    # ----------------------------------------------------------------

    @app.exception_handler(MarkerflowError)
    async def pipeline_exception_handler(request: Request, exc: MarkerflowError):
        if exc.http_status >= 500:
            logger.error("Pipeline error | path=%s error=%s details=%s", request.url.path, exc, exc.details)
        body = ErrorResponse(
            error_code=exc.error_code,
            message=exc.message,
            details=[ErrorDetail(message=d, code=exc.error_code) for d in exc.details],
            request_id=_request_id(request),
        )
        return JSONResponse(status_code=exc.http_status, content=body.model_dump(mode="json"))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Convert Pydantic/FastAPI validation errors to structured ErrorResponse."""
        details = [
            ErrorDetail(
                field=" → ".join(str(loc) for loc in err["loc"]),
                message=err["msg"],
                code="VALIDATION_ERROR",
            )
            for err in exc.errors()
        ]
        body = ErrorResponse(
            error_code="VALIDATION_ERROR",
            message="Request validation failed.",
            details=details,
            request_id=_request_id(request),
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=body.model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all for unhandled exceptions — never expose stack traces."""
        request_id = _request_id(request)
        logger.exception(
            "Unhandled exception | path=%s request_id=%s",
            request.url.path, request_id,
        )
        body = ErrorResponse(
            error_code="INTERNAL_ERROR",
            message="An unexpected error occurred.",
            request_id=request_id,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=body.model_dump(mode="json"),
            headers={"X-Request-ID": request_id},
        )

    # ----------------------------------------------------------------
    # Routers
    # ----------------------------------------------------------------

    app.include_router(artifacts_router, prefix="/api/v1")
    app.include_router(users_router,     prefix="/api/v1")

    @app.get(
        "/health",
        tags=["Operations"],
        summary="Liveness probe",
        description="Returns 200 if the process is alive. No external checks.",
    )
    async def health() -> dict:
        return {"status": "ok", "service": "markerflow"}

    return app


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


# ---------------------------------------------------------------------------
# Local development entry point
# ---------------------------------------------------------------------------

def run() -> None:
    import uvicorn

    settings = get_settings()
    configure_logging(settings)
    uvicorn.run(
        create_app(settings),
        host="0.0.0.0",
        port=settings.port,
        log_level="debug" if settings.debug else "info",
        access_log=False,
    )


if __name__ == "__main__":
    run()
