"""Request dependencies shared by the API routes"""

from decimal import Decimal
from typing import Optional

from fastapi import Request

from flashbot.database.models import quantize_amount, quantize_percent
from flashbot.engine import ArbitrageEngine


async def get_engine(request: Request) -> ArbitrageEngine:
    """Get arbitrage engine from app state"""
    return request.app.state.engine


async def verify_api_key(request: Request) -> str:
    """Verify API key from request"""
    api_key_auth = request.app.state.api_key_auth
    api_key = request.headers.get("X-API-Key")
    return await api_key_auth(api_key)


def format_amount(value: Optional[Decimal]) -> Optional[str]:
    """Render a price or money amount with 8 decimal places"""
    if value is None:
        return None
    return f"{quantize_amount(value):f}"


def format_percent(value: Decimal) -> str:
    """Render a percentage with 2 decimal places"""
    return f"{quantize_percent(value):f}"
