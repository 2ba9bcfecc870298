"""Rolling statistics over transactions and opportunities"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Iterable, Optional

import structlog

from flashbot.database.models import (
    StatsOverview,
    Transaction,
    TransactionStatus,
    quantize_amount,
    quantize_percent,
)
from flashbot.database.repository import Repository
from flashbot.services.opportunity_store import OpportunityStore

logger = structlog.get_logger()


class StatsAggregator:
    """
    Derives the dashboard overview.

    Totals cover transactions executed strictly after now - window. The
    aggregation itself is a pure function so it can be checked without
    storage; collect() gathers its inputs from the repository and store.
    """

    def __init__(
        self,
        repository: Repository,
        store: OpportunityStore,
        window: timedelta = timedelta(hours=24),
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize statistics aggregator.

        Args:
            repository: Source of transactions and trading pairs
            store: Source of the active opportunity count
            window: Rolling window for profit, cost and success rate (default 24h)
            clock: Returns the current UTC time (injectable for tests)
        """
        self.repository = repository
        self.store = store
        self.window = window
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._logger = logger.bind(component="stats_aggregator")

    @staticmethod
    def overview(
        transactions: Iterable[Transaction],
        active_opportunities: int,
        scanned_pairs: int,
        now: datetime,
        window: timedelta = timedelta(hours=24),
    ) -> StatsOverview:
        """
        Aggregate transactions inside the window into an overview.

        Transactions at or before now - window are ignored, so callers may
        pass a superset.
        """
        cutoff = now - window
        total = 0
        succeeded = 0
        total_profit = Decimal("0")
        gas_spent = Decimal("0")

        for tx in transactions:
            if tx.executed_at <= cutoff:
                continue
            total += 1
            if tx.gas_used is not None:
                gas_spent += tx.gas_used
            if tx.status == TransactionStatus.SUCCESS:
                succeeded += 1
                if tx.actual_profit is not None:
                    total_profit += tx.actual_profit

        success_rate = Decimal("0")
        if total > 0:
            success_rate = Decimal(succeeded) / Decimal(total) * 100

        return StatsOverview(
            total_profit_24h=quantize_amount(total_profit),
            active_opportunities=active_opportunities,
            success_rate=quantize_percent(success_rate),
            gas_spent_24h=quantize_amount(gas_spent),
            scanned_pairs=scanned_pairs,
            computed_at=now,
        )

    async def collect(self) -> StatsOverview:
        """Read current inputs and compute the overview"""
        now = self._clock()
        transactions = await self.repository.list_transactions_since(now - self.window)
        active = await self.store.count_active()
        pairs = await self.repository.list_trading_pairs(active_only=True)

        stats = self.overview(
            transactions,
            active_opportunities=active,
            scanned_pairs=len(pairs),
            now=now,
            window=self.window,
        )
        self._logger.debug(
            "stats_collected",
            transactions=len(transactions),
            active_opportunities=active,
            success_rate=str(stats.success_rate),
        )
        return stats
