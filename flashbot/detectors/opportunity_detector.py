"""Cross-venue price discrepancy detection"""

import re
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import structlog

from flashbot.database.models import (
    AMOUNT_LIMIT,
    PERCENT_LIMIT,
    Opportunity,
    PriceQuote,
    TradingPair,
    quantize_amount,
    quantize_percent,
)
from flashbot.errors import InvalidQuote
from flashbot.monitoring import metrics

logger = structlog.get_logger()

SYMBOL_PATTERN = re.compile(r"[A-Za-z0-9]{1,20}")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def margin_ratio(price_a: Decimal, price_b: Decimal) -> Decimal:
    """|price_a - price_b| / min(price_a, price_b), unrounded"""
    return abs(price_a - price_b) / min(price_a, price_b)


def raw_margin_pct(price_a: Decimal, price_b: Decimal) -> Decimal:
    """Unrounded profit margin percentage, compared against thresholds"""
    return margin_ratio(price_a, price_b) * 100


def calculate_margin_pct(price_a: Decimal, price_b: Decimal) -> Decimal:
    """Profit margin percentage at storage scale (2 dp)"""
    return quantize_percent(raw_margin_pct(price_a, price_b))


def estimate_profit(price_a: Decimal, price_b: Decimal, trade_amount: Decimal) -> Decimal:
    """Profit of moving trade_amount across the spread, at storage scale (8 dp)"""
    return quantize_amount(margin_ratio(price_a, price_b) * trade_amount)


class OpportunityDetector:
    """
    Compares every venue pair quoting the same base symbol and emits an
    opportunity when the price margin exceeds the detection filter.

    The filter compares the unrounded margin. The stored margin is rounded
    to 2 decimals and may therefore equal the filter (0.504% is kept and
    stored as 0.50).

    The comparison is O(n^2) in the number of venues per symbol. That is
    intended for a handful of venues; it does not scale past a small venue
    count without indexing quotes by price.
    """

    def __init__(
        self,
        min_margin_pct: Decimal = Decimal("0.5"),
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize detector.

        Args:
            min_margin_pct: Detection filter; margins must be strictly greater
            clock: Returns the current UTC time (injectable for tests)
        """
        self.min_margin_pct = Decimal(str(min_margin_pct))
        self._clock = clock or _utcnow
        self._logger = logger.bind(component="opportunity_detector")

    def validate_quote(self, quote: PriceQuote) -> PriceQuote:
        """
        Check a quote and normalize its price to Decimal at storage scale.

        Raises:
            InvalidQuote: If the symbol is malformed or the price is not a
                positive finite number
        """
        symbol = quote.symbol
        if not isinstance(symbol, str) or not SYMBOL_PATTERN.fullmatch(symbol):
            raise InvalidQuote(
                f"Malformed symbol: {symbol!r}", symbol=symbol, venue_id=quote.venue_id
            )

        try:
            price = Decimal(str(quote.price))
        except (InvalidOperation, ValueError, TypeError):
            raise InvalidQuote(
                f"Unparseable price: {quote.price!r}", symbol=symbol, venue_id=quote.venue_id
            )

        if not price.is_finite() or price <= 0:
            raise InvalidQuote(
                f"Price must be positive, got {price}", symbol=symbol, venue_id=quote.venue_id
            )

        if price >= AMOUNT_LIMIT:
            raise InvalidQuote(
                f"Price exceeds storage range: {quote.price}",
                symbol=symbol,
                venue_id=quote.venue_id,
            )

        price = quantize_amount(price)
        if price <= 0:
            raise InvalidQuote(
                f"Price rounds to zero at 8 decimals: {quote.price}",
                symbol=symbol,
                venue_id=quote.venue_id,
            )

        return PriceQuote(
            symbol=symbol.upper(),
            price=price,
            venue_id=quote.venue_id,
            observed_at=quote.observed_at,
        )

    def group_quotes(self, quotes: Iterable[PriceQuote]) -> Dict[str, List[PriceQuote]]:
        """
        Validate quotes and group the valid ones by symbol, preserving order.

        Invalid quotes are logged and dropped; they never abort the batch.
        """
        grouped: Dict[str, List[PriceQuote]] = defaultdict(list)
        for quote in quotes:
            try:
                valid = self.validate_quote(quote)
            except InvalidQuote as e:
                metrics.invalid_quotes.labels(venue=str(e.venue_id)).inc()
                self._logger.warning(
                    "invalid_quote_skipped",
                    symbol=e.symbol,
                    venue_id=e.venue_id,
                    error=str(e),
                )
                continue
            grouped[valid.symbol].append(valid)
        return grouped

    def detect(
        self,
        quotes: Sequence[PriceQuote],
        pairs: Sequence[TradingPair],
        min_margin_pct: Optional[Decimal] = None,
        trade_amount: Decimal = Decimal("1000"),
    ) -> List[Opportunity]:
        """
        Derive candidate opportunities from one quote batch.

        Args:
            quotes: Quotes of the current cycle
            pairs: Tracked trading pairs
            min_margin_pct: Overrides the detector's filter for this call
            trade_amount: Notional used to estimate profit

        Returns:
            Candidates in venue-pair iteration order, not ranked. Cost and
            executability are left for the classifier.
        """
        threshold = self.min_margin_pct if min_margin_pct is None else Decimal(str(min_margin_pct))
        trade_amount = Decimal(str(trade_amount))
        grouped = self.group_quotes(quotes)
        created_at = self._clock()

        candidates: List[Opportunity] = []
        for pair in pairs:
            group = grouped.get(pair.base_symbol.upper(), [])
            if len(group) < 2:
                self._logger.debug(
                    "pair_skipped_insufficient_quotes",
                    pair=pair.name,
                    quote_count=len(group),
                )
                continue

            for i in range(len(group)):
                for j in range(i + 1, len(group)):
                    quote_a = group[i]
                    quote_b = group[j]
                    if quote_a.venue_id == quote_b.venue_id:
                        continue

                    if raw_margin_pct(quote_a.price, quote_b.price) <= threshold:
                        continue

                    margin = calculate_margin_pct(quote_a.price, quote_b.price)
                    if margin >= PERCENT_LIMIT:
                        self._logger.warning(
                            "candidate_out_of_range",
                            pair=pair.name,
                            venue_a_id=quote_a.venue_id,
                            venue_b_id=quote_b.venue_id,
                            profit_margin_pct=str(margin),
                        )
                        continue

                    candidates.append(
                        Opportunity(
                            trading_pair_id=pair.id,
                            venue_a_id=quote_a.venue_id,
                            venue_b_id=quote_b.venue_id,
                            price_a=quote_a.price,
                            price_b=quote_b.price,
                            profit_margin_pct=margin,
                            estimated_profit=estimate_profit(
                                quote_a.price, quote_b.price, trade_amount
                            ),
                            created_at=created_at,
                        )
                    )
                    metrics.opportunities_detected.labels(pair=pair.name).inc()

        self._logger.info(
            "opportunities_detected",
            quote_count=len(quotes),
            pair_count=len(pairs),
            candidate_count=len(candidates),
            min_margin_pct=float(threshold),
        )
        return candidates
