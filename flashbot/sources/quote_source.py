"""Price quote sources consumed by the detection cycle"""

import asyncio
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import aiohttp
import structlog

from flashbot.config.models import QuoteSourceConfig
from flashbot.database.models import PriceQuote, Venue, quantize_amount
from flashbot.errors import SourceUnavailable
from flashbot.monitoring import metrics

logger = structlog.get_logger()


class CircuitState(Enum):
    """Circuit breaker states"""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failures detected, stop calling
    HALF_OPEN = "half_open"  # Testing recovery


@dataclass
class CircuitBreaker:
    """Circuit breaker for the upstream price API"""

    failure_threshold: int = 5
    timeout_seconds: int = 60
    failure_count: int = 0
    state: CircuitState = CircuitState.CLOSED
    last_failure_time: float = 0.0

    def record_success(self) -> None:
        """Record successful call"""
        self.failure_count = 0
        if self.state == CircuitState.HALF_OPEN:
            self.state = CircuitState.CLOSED
            logger.info("circuit_breaker_closed", state=self.state.value)

    def record_failure(self) -> None:
        """Record failed call"""
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == CircuitState.HALF_OPEN or (
            self.failure_count >= self.failure_threshold and self.state == CircuitState.CLOSED
        ):
            self.state = CircuitState.OPEN
            logger.warning(
                "circuit_breaker_opened",
                state=self.state.value,
                failure_count=self.failure_count,
            )

    def can_attempt(self) -> bool:
        """Check if call can be attempted"""
        if self.state == CircuitState.CLOSED:
            return True

        if self.state == CircuitState.OPEN:
            if time.time() - self.last_failure_time >= self.timeout_seconds:
                self.state = CircuitState.HALF_OPEN
                logger.info("circuit_breaker_half_open", state=self.state.value)
                return True
            return False

        # HALF_OPEN state - allow one attempt
        return True


class QuoteSource(ABC):
    """Supplies one quote per (symbol, venue) for a detection cycle"""

    @abstractmethod
    async def fetch_quotes(
        self, symbols: Sequence[str], venues: Sequence[Venue]
    ) -> List[PriceQuote]:
        """
        Fetch quotes for the given symbols across the given venues.

        Raises:
            SourceUnavailable: On transport errors, timeouts or bad payloads
        """

    async def close(self) -> None:
        """Release any held connections"""


class CoinGeckoQuoteSource(QuoteSource):
    """
    Quote source backed by CoinGecko USD spot prices.

    CoinGecko returns one reference price per coin. Per-venue quotes are
    derived from it with a uniform random variation of +/- spread_pct / 2,
    which simulates the dispersion between venues.
    """

    def __init__(
        self,
        config: Optional[QuoteSourceConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize CoinGecko quote source.

        Args:
            config: API URL, timeout, spread and symbol to coin-id mapping
            session: Optional shared aiohttp session (created lazily otherwise)
            rng: Random generator for venue variation
        """
        self.config = config or QuoteSourceConfig()
        self._session = session
        self._owns_session = session is None
        self._rng = rng or random.Random()
        self._circuit_breaker = CircuitBreaker()
        self._logger = logger.bind(component="coingecko_quote_source")

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this source created it"""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
            self._logger.info("quote_source_session_closed")

    async def fetch_reference_prices(self, symbols: Sequence[str]) -> Dict[str, Decimal]:
        """
        Fetch one USD reference price per symbol.

        Symbols without a known coin id are skipped.

        Raises:
            SourceUnavailable: On transport error, timeout, non-200 status,
                malformed payload or open circuit breaker
        """
        coin_ids = {
            symbol: self.config.coin_ids[symbol]
            for symbol in symbols
            if symbol in self.config.coin_ids
        }
        if not coin_ids:
            return {}

        if not self._circuit_breaker.can_attempt():
            raise SourceUnavailable("Quote source circuit breaker is open")

        session = await self._ensure_session()
        url = f"{self.config.api_url}/simple/price"
        params = {
            "ids": ",".join(coin_ids.values()),
            "vs_currencies": "usd",
            "include_last_updated_at": "true",
        }

        start_time = time.time()
        try:
            async with session.get(
                url,
                params=params,
                timeout=aiohttp.ClientTimeout(total=self.config.timeout_seconds),
            ) as response:
                if response.status != 200:
                    raise SourceUnavailable(f"Quote API error: HTTP {response.status}")
                payload = await response.json()
        except SourceUnavailable as e:
            self._circuit_breaker.record_failure()
            metrics.quote_source_errors.labels(error_type="http_status").inc()
            self._logger.warning("quote_fetch_failed", error=str(e))
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            self._circuit_breaker.record_failure()
            metrics.quote_source_errors.labels(error_type=type(e).__name__).inc()
            self._logger.warning(
                "quote_fetch_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise SourceUnavailable(f"Quote API unreachable: {e}") from e

        self._circuit_breaker.record_success()
        prices = self.parse_reference_prices(payload, coin_ids)
        self._logger.debug(
            "reference_prices_fetched",
            symbols=list(prices),
            latency_seconds=time.time() - start_time,
        )
        return prices

    def parse_reference_prices(
        self, payload: Any, coin_ids: Dict[str, str]
    ) -> Dict[str, Decimal]:
        """
        Extract USD prices from a /simple/price payload.

        Raises:
            SourceUnavailable: If the payload is not a JSON object
        """
        if not isinstance(payload, dict):
            raise SourceUnavailable("Quote API returned a malformed payload")

        prices: Dict[str, Decimal] = {}
        for symbol, coin_id in coin_ids.items():
            entry = payload.get(coin_id)
            if not isinstance(entry, dict) or "usd" not in entry:
                self._logger.warning("reference_price_missing", symbol=symbol, coin_id=coin_id)
                continue
            try:
                prices[symbol] = Decimal(str(entry["usd"]))
            except (InvalidOperation, ValueError):
                self._logger.warning(
                    "reference_price_unparseable", symbol=symbol, value=entry["usd"]
                )
        return prices

    def derive_venue_quotes(
        self,
        reference_prices: Dict[str, Decimal],
        venues: Sequence[Venue],
        observed_at: datetime,
    ) -> List[PriceQuote]:
        """Spread each reference price across venues with random variation"""
        spread = self.config.spread_pct / Decimal(100)
        quotes: List[PriceQuote] = []
        for symbol, base_price in reference_prices.items():
            for venue in venues:
                variation = (Decimal(str(self._rng.random())) - Decimal("0.5")) * spread
                quotes.append(
                    PriceQuote(
                        symbol=symbol,
                        price=quantize_amount(base_price * (1 + variation)),
                        venue_id=venue.id,
                        observed_at=observed_at,
                    )
                )
        return quotes

    async def fetch_quotes(
        self, symbols: Sequence[str], venues: Sequence[Venue]
    ) -> List[PriceQuote]:
        reference_prices = await self.fetch_reference_prices(symbols)
        quotes = self.derive_venue_quotes(
            reference_prices, venues, datetime.now(timezone.utc)
        )
        self._logger.info(
            "quotes_fetched",
            symbol_count=len(reference_prices),
            venue_count=len(venues),
            quote_count=len(quotes),
        )
        return quotes
