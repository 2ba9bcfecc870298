"""Opportunities and manual refresh endpoints"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel, Field
import structlog

from flashbot.api.dependencies import format_amount, format_percent, get_engine, verify_api_key
from flashbot.database.models import OpportunityWithDetails
from flashbot.engine import ArbitrageEngine
from flashbot.errors import ConfigInvalid

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["opportunities"])


class OpportunityResponse(BaseModel):
    """Opportunity response model"""

    id: int
    trading_pair_id: int
    trading_pair: Optional[str] = Field(None, description="Trading pair name, e.g. BTC/USDC")
    venue_a_id: int
    venue_a: Optional[str] = Field(None, description="Name of the first venue")
    venue_b_id: int
    venue_b: Optional[str] = Field(None, description="Name of the second venue")
    price_a: str = Field(description="Price on venue A (8 decimals)")
    price_b: str = Field(description="Price on venue B (8 decimals)")
    profit_margin: str = Field(description="Profit margin percentage (2 decimals)")
    estimated_profit: str = Field(description="Estimated profit for the configured trade amount")
    gas_estimate: str = Field(description="Estimated execution cost")
    is_executable: bool
    created_at: datetime


class RefreshResponse(BaseModel):
    """Manual detection cycle result"""

    success: bool
    skipped: bool
    detected: int
    executable: int
    reason: Optional[str] = None


def to_opportunity_response(item: OpportunityWithDetails) -> OpportunityResponse:
    opp = item.opportunity
    return OpportunityResponse(
        id=opp.id,
        trading_pair_id=opp.trading_pair_id,
        trading_pair=item.trading_pair.name if item.trading_pair else None,
        venue_a_id=opp.venue_a_id,
        venue_a=item.venue_a.name if item.venue_a else None,
        venue_b_id=opp.venue_b_id,
        venue_b=item.venue_b.name if item.venue_b else None,
        price_a=format_amount(opp.price_a),
        price_b=format_amount(opp.price_b),
        profit_margin=format_percent(opp.profit_margin_pct),
        estimated_profit=format_amount(opp.estimated_profit),
        gas_estimate=format_amount(opp.estimated_cost),
        is_executable=opp.is_executable,
        created_at=opp.created_at,
    )


@router.get("/opportunities", response_model=List[OpportunityResponse])
async def get_opportunities(
    limit: int = Query(50, ge=1, le=1000, description="Maximum number of results"),
    engine: ArbitrageEngine = Depends(get_engine),
    api_key: str = Depends(verify_api_key),
) -> List[OpportunityResponse]:
    """
    Get current arbitrage opportunities, newest first.

    Requires authentication via X-API-Key header.
    """
    try:
        items = await engine.list_opportunities(limit)
    except Exception as e:
        logger.error("opportunities_query_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to query opportunities")

    logger.info("opportunities_queried", count=len(items), limit=limit)
    return [to_opportunity_response(item) for item in items]


@router.get("/opportunities/{opportunity_id}", response_model=OpportunityResponse)
async def get_opportunity(
    opportunity_id: int = Path(..., ge=1),
    engine: ArbitrageEngine = Depends(get_engine),
    api_key: str = Depends(verify_api_key),
) -> OpportunityResponse:
    """Get one opportunity; 404 once it has expired"""
    item = await engine.get_opportunity(opportunity_id)
    return to_opportunity_response(item)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_opportunities(
    engine: ArbitrageEngine = Depends(get_engine),
    api_key: str = Depends(verify_api_key),
) -> RefreshResponse:
    """
    Run a detection cycle now.

    Waits for an in-flight scheduled cycle before running. A quote source
    outage is reported as a skipped cycle, not an error.

    Requires authentication via X-API-Key header.
    """
    try:
        result = await engine.trigger_detection_cycle()
    except ConfigInvalid:
        raise
    except Exception as e:
        logger.error("manual_refresh_failed", error=str(e), error_type=type(e).__name__)
        raise HTTPException(status_code=500, detail="Failed to refresh opportunities")

    return RefreshResponse(
        success=not result.skipped,
        skipped=result.skipped,
        detected=result.detected,
        executable=result.executable,
        reason=result.reason,
    )
