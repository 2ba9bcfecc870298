"""Health check endpoint"""

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
import structlog

from flashbot.api.dependencies import get_engine
from flashbot.database.manager import DatabaseManager
from flashbot.engine import ArbitrageEngine

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["health"])


class HealthResponse(BaseModel):
    """Health check response model"""

    status: str = Field(description="Overall health status (healthy or unhealthy)")
    storage: str = Field(description="Storage status (connected, in_memory, disconnected or error)")
    active_opportunities: int = Field(description="Opportunities inside the retention window")
    database_pool_size: int = Field(0, description="Current database connection pool size")
    database_pool_free: int = Field(0, description="Number of free connections in pool")


@router.get("/health", response_model=HealthResponse)
async def health_check(
    response: Response,
    engine: ArbitrageEngine = Depends(get_engine),
) -> HealthResponse:
    """
    Health check endpoint to verify system status.

    Returns:
    - 200 OK if storage is reachable
    - 503 Service Unavailable otherwise

    Does not require authentication (public endpoint).
    """
    repository = engine.repository
    try:
        pool_size = 0
        pool_free = 0
        storage = "in_memory"

        if isinstance(repository, DatabaseManager):
            if not repository.pool:
                logger.error("health_check_failed", reason="database_pool_not_initialized")
                response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
                return HealthResponse(
                    status="unhealthy",
                    storage="disconnected",
                    active_opportunities=0,
                )

            pool_size = await repository.get_pool_size()
            pool_free = await repository.get_pool_free_size()
            async with repository.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            storage = "connected"

        active = await engine.store.count_active()

        logger.debug(
            "health_check_success",
            storage=storage,
            active_opportunities=active,
        )
        return HealthResponse(
            status="healthy",
            storage=storage,
            active_opportunities=active,
            database_pool_size=pool_size,
            database_pool_free=pool_free,
        )

    except Exception as e:
        logger.error("health_check_failed", error=str(e))
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="unhealthy",
            storage="error",
            active_opportunities=0,
        )
