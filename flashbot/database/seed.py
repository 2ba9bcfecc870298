"""Default venues and trading pairs seeded into an empty repository"""

from typing import List

import structlog

from flashbot.database.models import TradingPair, Venue
from flashbot.database.repository import Repository

logger = structlog.get_logger()

DEFAULT_VENUES = (
    Venue(name="QuickSwap", api_url="https://api.quickswap.exchange"),
    Venue(name="SushiSwap", api_url="https://api.sushi.com"),
    Venue(name="Uniswap V3", api_url="https://api.uniswap.org"),
    Venue(name="Balancer", api_url="https://api.balancer.fi"),
    Venue(name="Curve", api_url="https://api.curve.fi"),
    Venue(name="1inch", api_url="https://api.1inch.dev"),
)

DEFAULT_TRADING_PAIRS = (
    TradingPair(base_symbol="BTC", quote_symbol="USDC", name="BTC/USDC"),
    TradingPair(base_symbol="ETH", quote_symbol="USDT", name="ETH/USDT"),
    TradingPair(base_symbol="MATIC", quote_symbol="USDC", name="MATIC/USDC"),
    TradingPair(base_symbol="WBTC", quote_symbol="ETH", name="WBTC/ETH"),
    TradingPair(base_symbol="LINK", quote_symbol="ETH", name="LINK/ETH"),
)


async def seed_default_data(repository: Repository) -> bool:
    """
    Insert default venues and trading pairs unless any venue exists.

    Returns:
        True if data was seeded, False if the repository already had venues
    """
    existing = await repository.list_venues(active_only=False)
    if existing:
        logger.debug("default_data_present", venue_count=len(existing))
        return False

    venues: List[Venue] = [await repository.create_venue(venue) for venue in DEFAULT_VENUES]
    pairs: List[TradingPair] = [
        await repository.create_trading_pair(pair) for pair in DEFAULT_TRADING_PAIRS
    ]
    await repository.get_settings()

    logger.info(
        "default_data_seeded",
        venues=[venue.name for venue in venues],
        trading_pairs=[pair.name for pair in pairs],
    )
    return True
