"""Unit tests for the opportunity detector"""

import random
from decimal import Decimal

import pytest

from flashbot.database.models import PriceQuote, TradingPair
from flashbot.detectors.opportunity_detector import (
    OpportunityDetector,
    calculate_margin_pct,
    estimate_profit,
    raw_margin_pct,
)
from flashbot.errors import InvalidQuote

from tests.conftest import T0, FakeClock, make_quote


@pytest.fixture
def detector():
    """Create detector with default 0.5% filter and fixed clock"""
    return OpportunityDetector(min_margin_pct=Decimal("0.5"), clock=FakeClock())


class TestMarginCalculation:
    """Test margin and profit helpers"""

    def test_margin_relative_to_lower_price(self):
        """Test margin uses the lower price as denominator"""
        assert calculate_margin_pct(Decimal("50000"), Decimal("50800")) == Decimal("1.60")
        assert calculate_margin_pct(Decimal("50800"), Decimal("50000")) == Decimal("1.60")

    def test_margin_rounds_half_up(self):
        """Test margin is quantized to 2 decimals"""
        # 0.125% exactly
        assert calculate_margin_pct(Decimal("800"), Decimal("801")) == Decimal("0.13")

    def test_identical_prices_zero_margin(self):
        """Test identical prices give zero margin"""
        assert calculate_margin_pct(Decimal("100"), Decimal("100")) == Decimal("0.00")

    def test_estimate_profit(self):
        """Test estimated profit is margin fraction times trade amount"""
        profit = estimate_profit(Decimal("50000"), Decimal("50800"), Decimal("1000"))
        assert profit == Decimal("16.00000000")


class TestDetection:
    """Test candidate detection"""

    def test_scenario_single_candidate(self, detector, btc_pair):
        """Test BTC 50000 vs 50800 yields one candidate with 1.6% margin"""
        quotes = [make_quote("BTC", Decimal("50000"), 1), make_quote("BTC", Decimal("50800"), 2)]

        candidates = detector.detect(quotes, [btc_pair])

        assert len(candidates) == 1
        opp = candidates[0]
        assert opp.profit_margin_pct == Decimal("1.60")
        assert opp.venue_a_id == 1
        assert opp.venue_b_id == 2
        assert opp.price_a == Decimal("50000.00000000")
        assert opp.price_b == Decimal("50800.00000000")
        assert opp.trading_pair_id == btc_pair.id
        assert opp.created_at == T0
        assert opp.is_executable is False
        assert opp.id is None

    def test_identical_prices_no_candidates(self, detector, btc_pair):
        """Test identical prices on two venues yield nothing"""
        quotes = [make_quote("BTC", Decimal("50000"), 1), make_quote("BTC", Decimal("50000"), 2)]
        assert detector.detect(quotes, [btc_pair]) == []

    def test_single_quote_no_candidates(self, detector, btc_pair):
        """Test a symbol with fewer than two quotes yields nothing"""
        assert detector.detect([make_quote("BTC", Decimal("50000"), 1)], [btc_pair]) == []

    def test_same_venue_quotes_skipped(self, detector, btc_pair):
        """Test two quotes from the same venue are never compared"""
        quotes = [make_quote("BTC", Decimal("50000"), 1), make_quote("BTC", Decimal("52000"), 1)]
        assert detector.detect(quotes, [btc_pair]) == []

    def test_margin_equal_to_filter_excluded(self, btc_pair):
        """Test the filter is strict"""
        detector = OpportunityDetector(min_margin_pct=Decimal("1.6"), clock=FakeClock())
        quotes = [make_quote("BTC", Decimal("50000"), 1), make_quote("BTC", Decimal("50800"), 2)]
        assert detector.detect(quotes, [btc_pair]) == []

    def test_filter_compares_unrounded_margin(self, detector, btc_pair):
        """Test a 0.504% margin passes the filter and is stored as 0.50"""
        quotes = [make_quote("BTC", Decimal("100"), 1), make_quote("BTC", Decimal("100.504"), 2)]

        [candidate] = detector.detect(quotes, [btc_pair])

        assert candidate.profit_margin_pct == Decimal("0.50")

    def test_margin_rounding_up_to_filter_excluded(self, detector, btc_pair):
        """Test a 0.4999% margin is dropped even though it rounds to 0.50"""
        quotes = [make_quote("BTC", Decimal("100"), 1), make_quote("BTC", Decimal("100.4999"), 2)]
        assert detector.detect(quotes, [btc_pair]) == []

    def test_margin_beyond_storage_range_skipped(self, detector, btc_pair):
        """Test a 1000% margin is skipped while the other venue pairs are kept"""
        quotes = [
            make_quote("BTC", Decimal("1"), 1),
            make_quote("BTC", Decimal("11"), 2),
            make_quote("BTC", Decimal("1.5"), 3),
        ]

        candidates = detector.detect(quotes, [btc_pair])

        assert [(c.venue_a_id, c.venue_b_id) for c in candidates] == [(1, 3), (2, 3)]
        assert [c.profit_margin_pct for c in candidates] == [Decimal("50.00"), Decimal("633.33")]

    def test_threshold_override(self, detector, btc_pair):
        """Test per-call filter override"""
        quotes = [make_quote("BTC", Decimal("50000"), 1), make_quote("BTC", Decimal("50800"), 2)]
        assert detector.detect(quotes, [btc_pair], min_margin_pct=Decimal("2")) == []

    def test_untracked_symbol_ignored(self, detector, btc_pair):
        """Test quotes for symbols without a tracked pair are ignored"""
        quotes = [make_quote("ETH", Decimal("3000"), 1), make_quote("ETH", Decimal("3300"), 2)]
        assert detector.detect(quotes, [btc_pair]) == []

    def test_three_venues_iteration_order(self, detector, btc_pair):
        """Test every unordered venue pair is compared in iteration order"""
        quotes = [
            make_quote("BTC", Decimal("100"), 1),
            make_quote("BTC", Decimal("102"), 2),
            make_quote("BTC", Decimal("104"), 3),
        ]

        candidates = detector.detect(quotes, [btc_pair])

        assert [(c.venue_a_id, c.venue_b_id) for c in candidates] == [(1, 2), (1, 3), (2, 3)]

    def test_lowercase_symbol_matches_pair(self, detector, btc_pair):
        """Test quote symbols are normalized to upper case"""
        quotes = [make_quote("btc", Decimal("50000"), 1), make_quote("BTC", Decimal("50800"), 2)]
        assert len(detector.detect(quotes, [btc_pair])) == 1


class TestInvalidQuotes:
    """Test rejection of malformed quotes"""

    @pytest.mark.parametrize("price", [Decimal("0"), Decimal("-5"), "abc", Decimal("NaN"), Decimal("Infinity")])
    def test_validate_rejects_bad_price(self, detector, price):
        """Test non-positive or non-numeric prices are rejected"""
        with pytest.raises(InvalidQuote):
            detector.validate_quote(make_quote("BTC", price, 1))

    def test_validate_rejects_price_rounding_to_zero(self, detector):
        """Test prices below storage precision are rejected"""
        with pytest.raises(InvalidQuote):
            detector.validate_quote(make_quote("BTC", Decimal("0.000000001"), 1))

    @pytest.mark.parametrize("price", [Decimal("10000000000"), Decimal("1e30")])
    def test_validate_rejects_price_beyond_storage_range(self, detector, price):
        """Test prices that overflow the price column are rejected"""
        with pytest.raises(InvalidQuote) as exc_info:
            detector.validate_quote(make_quote("BTC", price, 2))
        assert exc_info.value.venue_id == 2

    @pytest.mark.parametrize("symbol", ["", "BTC/USD", "B TC", "X" * 21])
    def test_validate_rejects_bad_symbol(self, detector, symbol):
        """Test malformed symbols are rejected"""
        with pytest.raises(InvalidQuote) as exc_info:
            detector.validate_quote(make_quote(symbol, Decimal("1"), 3))
        assert exc_info.value.venue_id == 3

    def test_bad_quote_does_not_abort_batch(self, detector, btc_pair):
        """Test one invalid quote is skipped and the rest are processed"""
        quotes = [
            make_quote("BTC", Decimal("50000"), 1),
            make_quote("BTC", Decimal("-1"), 3),
            make_quote("BTC", Decimal("50800"), 2),
        ]

        candidates = detector.detect(quotes, [btc_pair])

        assert len(candidates) == 1
        assert {candidates[0].venue_a_id, candidates[0].venue_b_id} == {1, 2}


class TestDetectionProperties:
    """Test invariants over random quote batches"""

    def test_margin_and_distinct_venues(self, detector):
        """Test every candidate exceeds the filter and spans two venues"""
        rng = random.Random(42)
        pairs = [
            TradingPair(base_symbol=symbol, quote_symbol="USD", name=f"{symbol}/USD", id=i)
            for i, symbol in enumerate(["BTC", "ETH", "LINK"], start=1)
        ]

        for _ in range(50):
            quotes = [
                PriceQuote(
                    symbol=pair.base_symbol,
                    price=Decimal(str(round(rng.uniform(90, 110), 4))),
                    venue_id=rng.randint(1, 4),
                    observed_at=T0,
                )
                for pair in pairs
                for _ in range(rng.randint(0, 5))
            ]

            for candidate in detector.detect(quotes, pairs):
                assert raw_margin_pct(candidate.price_a, candidate.price_b) > Decimal("0.5")
                assert candidate.profit_margin_pct >= Decimal("0.5")
                assert candidate.venue_a_id != candidate.venue_b_id
