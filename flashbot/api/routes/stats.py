"""Statistics endpoint"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
import structlog

from flashbot.api.dependencies import format_amount, format_percent, get_engine, verify_api_key
from flashbot.engine import ArbitrageEngine

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["statistics"])


class StatsResponse(BaseModel):
    """Overview statistics response model"""

    total_profit_24h: str = Field(description="Realized profit of successful executions in the window")
    active_opportunities: int = Field(description="Opportunities inside the retention window")
    success_rate: str = Field(description="Successful executions percentage (2 decimals)")
    gas_spent_24h: str = Field(description="Execution cost of all executions in the window")
    scanned_pairs: int = Field(description="Active trading pairs")
    computed_at: Optional[datetime] = None


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    engine: ArbitrageEngine = Depends(get_engine),
    api_key: str = Depends(verify_api_key),
) -> StatsResponse:
    """
    Get the rolling 24h overview.

    Requires authentication via X-API-Key header.
    """
    try:
        stats = await engine.get_stats_overview()
    except Exception as e:
        logger.error("stats_query_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to compute statistics")

    return StatsResponse(
        total_profit_24h=format_amount(stats.total_profit_24h),
        active_opportunities=stats.active_opportunities,
        success_rate=format_percent(stats.success_rate),
        gas_spent_24h=format_amount(stats.gas_spent_24h),
        scanned_pairs=stats.scanned_pairs,
        computed_at=stats.computed_at,
    )
