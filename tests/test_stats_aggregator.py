"""Unit tests for statistics aggregation"""

from datetime import timedelta
from decimal import Decimal

import pytest

from flashbot.analytics.stats_aggregator import StatsAggregator
from flashbot.database.models import Opportunity, Transaction, TransactionStatus
from flashbot.services.opportunity_store import OpportunityStore

from tests.conftest import T0


def make_tx(status: TransactionStatus, hours_ago: float, profit=None, gas="5") -> Transaction:
    return Transaction(
        opportunity_id=1,
        status=status,
        executed_at=T0 - timedelta(hours=hours_ago),
        actual_profit=Decimal(profit) if profit is not None else None,
        gas_used=Decimal(gas) if gas is not None else None,
    )


class TestOverview:
    """Test the pure aggregation"""

    def test_nine_of_ten_success(self):
        """Test 9 successes out of 10 in the window gives 90% success rate"""
        transactions = [make_tx(TransactionStatus.SUCCESS, 1, profit="10") for _ in range(9)]
        transactions.append(make_tx(TransactionStatus.FAILED, 2))

        stats = StatsAggregator.overview(transactions, 3, 5, now=T0)

        assert stats.success_rate == Decimal("90.00")
        assert stats.total_profit_24h == Decimal("90.00000000")
        assert stats.gas_spent_24h == Decimal("50.00000000")
        assert stats.active_opportunities == 3
        assert stats.scanned_pairs == 5

    def test_empty_window_success_rate_zero(self):
        """Test success rate is exactly 0 for an empty window"""
        stats = StatsAggregator.overview([], 0, 0, now=T0)

        assert stats.success_rate == Decimal("0")
        assert stats.total_profit_24h == Decimal("0")
        assert stats.gas_spent_24h == Decimal("0")

    def test_only_success_profit_summed(self):
        """Test profit ignores failed transactions while cost counts all"""
        transactions = [
            make_tx(TransactionStatus.SUCCESS, 1, profit="25.5", gas="2"),
            make_tx(TransactionStatus.FAILED, 1, profit="100", gas="3"),
            make_tx(TransactionStatus.PENDING, 1, gas="4"),
        ]

        stats = StatsAggregator.overview(transactions, 0, 0, now=T0)

        assert stats.total_profit_24h == Decimal("25.5")
        assert stats.gas_spent_24h == Decimal("9")
        assert stats.success_rate == Decimal("33.33")

    def test_window_excludes_old_transactions(self):
        """Test transactions at or before now - 24h are ignored"""
        transactions = [
            make_tx(TransactionStatus.SUCCESS, 24, profit="50"),
            make_tx(TransactionStatus.SUCCESS, 30, profit="50"),
            make_tx(TransactionStatus.FAILED, 23.9),
        ]

        stats = StatsAggregator.overview(transactions, 0, 0, now=T0)

        assert stats.total_profit_24h == Decimal("0")
        assert stats.success_rate == Decimal("0")
        assert stats.gas_spent_24h == Decimal("5")

    def test_repeated_reads_identical(self):
        """Test decimal totals do not drift across repeated computation"""
        transactions = [
            make_tx(TransactionStatus.SUCCESS, 1, profit="0.1", gas="0.2") for _ in range(3)
        ]

        first = StatsAggregator.overview(transactions, 0, 0, now=T0)
        second = StatsAggregator.overview(transactions, 0, 0, now=T0)

        assert first == second
        assert first.total_profit_24h == Decimal("0.30000000")


class TestCollect:
    """Test collection from storage"""

    async def test_collect_reads_repository_and_store(self, seeded_repository, clock):
        """Test collect combines transactions, active opportunities and pairs"""
        store = OpportunityStore(seeded_repository, clock=clock)
        await store.replace_generation(
            [
                Opportunity(
                    trading_pair_id=1,
                    venue_a_id=1,
                    venue_b_id=2,
                    price_a=Decimal("1"),
                    price_b=Decimal("2"),
                    profit_margin_pct=Decimal("100"),
                    estimated_profit=Decimal("1000"),
                    created_at=clock(),
                )
            ]
        )
        await seeded_repository.create_transaction(make_tx(TransactionStatus.SUCCESS, 1, profit="12"))
        await seeded_repository.create_transaction(make_tx(TransactionStatus.SUCCESS, 48, profit="99"))

        aggregator = StatsAggregator(seeded_repository, store, clock=clock)
        stats = await aggregator.collect()

        assert stats.total_profit_24h == Decimal("12")
        assert stats.success_rate == Decimal("100.00")
        assert stats.active_opportunities == 1
        assert stats.scanned_pairs == 1
        assert stats.computed_at == clock()
