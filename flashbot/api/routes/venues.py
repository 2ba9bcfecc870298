"""Venues and trading pairs endpoints"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
import structlog

from flashbot.api.dependencies import get_engine, verify_api_key
from flashbot.engine import ArbitrageEngine

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["venues"])


class VenueResponse(BaseModel):
    """Venue response model"""

    id: int
    name: str
    api_url: str
    is_active: bool


class TradingPairResponse(BaseModel):
    """Trading pair response model"""

    id: int
    base_symbol: str
    quote_symbol: str
    name: str
    is_active: bool


@router.get("/venues", response_model=List[VenueResponse])
async def get_venues(
    engine: ArbitrageEngine = Depends(get_engine),
    api_key: str = Depends(verify_api_key),
) -> List[VenueResponse]:
    """
    Get active trading venues.

    Requires authentication via X-API-Key header.
    """
    try:
        venues = await engine.list_venues()
    except Exception as e:
        logger.error("venues_query_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to query venues")

    return [
        VenueResponse(id=v.id, name=v.name, api_url=v.api_url, is_active=v.is_active)
        for v in venues
    ]


@router.get("/trading-pairs", response_model=List[TradingPairResponse])
async def get_trading_pairs(
    engine: ArbitrageEngine = Depends(get_engine),
    api_key: str = Depends(verify_api_key),
) -> List[TradingPairResponse]:
    """
    Get active trading pairs.

    Requires authentication via X-API-Key header.
    """
    try:
        pairs = await engine.list_trading_pairs()
    except Exception as e:
        logger.error("trading_pairs_query_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to query trading pairs")

    return [
        TradingPairResponse(
            id=p.id,
            base_symbol=p.base_symbol,
            quote_symbol=p.quote_symbol,
            name=p.name,
            is_active=p.is_active,
        )
        for p in pairs
    ]
