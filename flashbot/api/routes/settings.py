"""Bot settings endpoints"""

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel
import structlog

from flashbot.api.dependencies import format_amount, format_percent, get_engine, verify_api_key
from flashbot.database.models import BotSettings
from flashbot.engine import ArbitrageEngine
from flashbot.errors import ConfigInvalid

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["settings"])


class SettingsResponse(BaseModel):
    """Bot settings response model"""

    min_profit_threshold: str
    max_gas_price: str
    trade_amount: str
    slippage_tolerance: str
    auto_execute_enabled: bool
    alerts_enabled: bool
    updated_at: Optional[datetime] = None


def to_settings_response(settings: BotSettings) -> SettingsResponse:
    return SettingsResponse(
        min_profit_threshold=format_percent(settings.min_profit_threshold),
        max_gas_price=format_amount(settings.max_gas_price),
        trade_amount=format_amount(settings.trade_amount),
        slippage_tolerance=format_percent(settings.slippage_tolerance),
        auto_execute_enabled=settings.auto_execute_enabled,
        alerts_enabled=settings.alerts_enabled,
        updated_at=settings.updated_at,
    )


@router.get("/settings", response_model=SettingsResponse)
async def get_settings(
    engine: ArbitrageEngine = Depends(get_engine),
    api_key: str = Depends(verify_api_key),
) -> SettingsResponse:
    """
    Get bot settings, created with defaults on first access.

    Requires authentication via X-API-Key header.
    """
    try:
        settings = await engine.get_settings()
    except Exception as e:
        logger.error("settings_query_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to load settings")

    return to_settings_response(settings)


@router.post("/settings", response_model=SettingsResponse)
async def update_settings(
    changes: Dict[str, Any] = Body(..., description="Partial settings update"),
    engine: ArbitrageEngine = Depends(get_engine),
    api_key: str = Depends(verify_api_key),
) -> SettingsResponse:
    """
    Apply a partial settings update.

    Returns 400 when any field is unknown or out of range; nothing is
    applied in that case.

    Requires authentication via X-API-Key header.
    """
    try:
        settings = await engine.update_settings(changes)
    except ConfigInvalid:
        raise
    except Exception as e:
        logger.error("settings_update_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to update settings")

    return to_settings_response(settings)
