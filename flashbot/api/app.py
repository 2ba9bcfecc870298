"""FastAPI application with authentication and CORS middleware"""

import time
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request, Response, Security, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader
import structlog

from flashbot.config.models import Settings
from flashbot.engine import ArbitrageEngine
from flashbot.errors import ConfigInvalid, NotFound
from flashbot.monitoring import metrics

logger = structlog.get_logger()

# API key header security
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


class APIKeyAuth:
    """API key authentication dependency"""

    def __init__(self, api_keys: List[str]):
        self.api_keys = set(api_keys)
        self._logger = logger.bind(component="api_key_auth")

    async def __call__(self, api_key: Optional[str] = Security(api_key_header)) -> str:
        """
        Validate API key from X-API-Key header.

        Args:
            api_key: API key from request header

        Returns:
            Validated API key

        Raises:
            HTTPException: If API key is missing or invalid
        """
        if api_key is None:
            self._logger.warning("api_auth_failed", reason="missing_api_key")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing API key. Provide X-API-Key header.",
            )

        if api_key not in self.api_keys:
            self._logger.warning("api_auth_failed", reason="invalid_api_key")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid API key",
            )

        return api_key


def create_app(settings: Settings, engine: ArbitrageEngine) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Application settings
        engine: Arbitrage engine serving the requests

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="FlashBot Arbitrage Engine API",
        description="REST API for cross-venue arbitrage opportunities, paper executions and statistics",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Configure CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:5173",
        ],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # Add metrics middleware
    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Middleware to track API request metrics"""
        # Skip metrics for the metrics endpoint itself
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as e:
            metrics.api_errors.labels(
                endpoint=request.url.path,
                error_type=type(e).__name__,
            ).inc()
            raise

        # Label by route template so path parameters do not explode cardinality
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)
        latency = time.time() - start_time
        metrics.api_request_latency.labels(
            endpoint=endpoint,
            method=request.method,
        ).observe(latency)
        metrics.api_requests_total.labels(
            endpoint=endpoint,
            method=request.method,
            status=response.status_code,
        ).inc()
        return response

    @app.exception_handler(ConfigInvalid)
    async def config_invalid_handler(request: Request, exc: ConfigInvalid) -> JSONResponse:
        logger.warning("config_invalid", path=request.url.path, field=exc.field, error=str(exc))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": str(exc), "field": exc.field},
        )

    @app.exception_handler(NotFound)
    async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    # Store dependencies in app state
    app.state.engine = engine
    app.state.settings = settings
    app.state.api_key_auth = APIKeyAuth(settings.get_api_keys_list())

    # Register routes
    from flashbot.api.routes import health, opportunities, settings as settings_routes
    from flashbot.api.routes import stats, transactions, venues

    app.include_router(venues.router)
    app.include_router(opportunities.router)
    app.include_router(transactions.router)
    app.include_router(stats.router)
    app.include_router(settings_routes.router)
    app.include_router(health.router)

    from flashbot.monitoring.metrics import get_content_type, get_metrics

    @app.get("/metrics")
    async def metrics_endpoint():
        """Prometheus metrics endpoint"""
        return Response(content=get_metrics(), media_type=get_content_type())

    logger.info(
        "fastapi_app_created",
        title=app.title,
        version=app.version,
        docs_url=app.docs_url,
    )

    return app
