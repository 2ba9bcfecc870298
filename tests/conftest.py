"""Shared fixtures for engine tests"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional, Sequence

import pytest

from flashbot.database import InMemoryRepository, PriceQuote, TradingPair, Venue
from flashbot.errors import SourceUnavailable
from flashbot.sources.quote_source import QuoteSource

T0 = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced UTC clock"""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class StaticQuoteSource(QuoteSource):
    """Returns a fixed set of reference prices, or fails on demand"""

    def __init__(self, prices: Optional[dict] = None, fail: bool = False):
        # {symbol: {venue_id: price}}
        self.prices = prices or {}
        self.fail = fail
        self.calls = 0
        self.closed = False

    async def fetch_quotes(
        self, symbols: Sequence[str], venues: Sequence[Venue]
    ) -> List[PriceQuote]:
        self.calls += 1
        if self.fail:
            raise SourceUnavailable("upstream down")
        venue_ids = {venue.id for venue in venues}
        return [
            PriceQuote(symbol=symbol, price=Decimal(str(price)), venue_id=venue_id, observed_at=T0)
            for symbol in symbols
            for venue_id, price in self.prices.get(symbol, {}).items()
            if venue_id in venue_ids
        ]

    async def close(self) -> None:
        self.closed = True


def make_quote(symbol: str, price, venue_id: int) -> PriceQuote:
    return PriceQuote(symbol=symbol, price=price, venue_id=venue_id, observed_at=T0)


@pytest.fixture
def clock():
    """Create fake clock starting at T0"""
    return FakeClock()


@pytest.fixture
def repository():
    """Create empty in-memory repository"""
    return InMemoryRepository()


@pytest.fixture
async def seeded_repository(repository):
    """In-memory repository with two venues and a BTC pair"""
    await repository.create_venue(Venue(name="VenueX", api_url="https://x.example.com"))
    await repository.create_venue(Venue(name="VenueY", api_url="https://y.example.com"))
    await repository.create_trading_pair(
        TradingPair(base_symbol="BTC", quote_symbol="USDC", name="BTC/USDC")
    )
    return repository


@pytest.fixture
def btc_pair():
    """BTC/USDC trading pair with id 1"""
    return TradingPair(base_symbol="BTC", quote_symbol="USDC", name="BTC/USDC", id=1)
