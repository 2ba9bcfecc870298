"""In-process repository used when no database is configured"""

import itertools
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog

from flashbot.database.models import (
    BotSettings,
    Opportunity,
    OpportunityWithDetails,
    TradingPair,
    Transaction,
    Venue,
)
from flashbot.database.repository import Repository

logger = structlog.get_logger()


class InMemoryRepository(Repository):
    """
    Repository backed by plain Python containers.

    Opportunities are held in an immutable tuple that is swapped wholesale on
    every write, so readers always iterate a complete generation.
    """

    def __init__(self):
        self._venues: Dict[int, Venue] = {}
        self._pairs: Dict[int, TradingPair] = {}
        self._opportunities: Tuple[Opportunity, ...] = ()
        self._transactions: List[Transaction] = []
        self._settings: Optional[BotSettings] = None

        self._venue_ids = itertools.count(1)
        self._pair_ids = itertools.count(1)
        self._opportunity_ids = itertools.count(1)
        self._transaction_ids = itertools.count(1)

        self._logger = logger.bind(component="in_memory_repository")

    async def create_venue(self, venue: Venue) -> Venue:
        stored = replace(venue, id=next(self._venue_ids))
        self._venues[stored.id] = stored
        return stored

    async def list_venues(self, active_only: bool = True) -> List[Venue]:
        return [v for v in self._venues.values() if v.is_active or not active_only]

    async def create_trading_pair(self, pair: TradingPair) -> TradingPair:
        stored = replace(pair, id=next(self._pair_ids))
        self._pairs[stored.id] = stored
        return stored

    async def list_trading_pairs(self, active_only: bool = True) -> List[TradingPair]:
        return [p for p in self._pairs.values() if p.is_active or not active_only]

    async def replace_opportunities(
        self, opportunities: Sequence[Opportunity], cutoff: datetime
    ) -> List[Opportunity]:
        inserted = [replace(opp, id=next(self._opportunity_ids)) for opp in opportunities]
        kept = tuple(opp for opp in self._opportunities if opp.created_at >= cutoff)
        self._opportunities = kept + tuple(inserted)
        return inserted

    async def list_opportunities(
        self, limit: int, since: Optional[datetime] = None
    ) -> List[OpportunityWithDetails]:
        snapshot = self._opportunities
        if since is not None:
            snapshot = tuple(opp for opp in snapshot if opp.created_at >= since)
        # Newest first; later inserts win ties on created_at
        ordered = sorted(
            snapshot, key=lambda opp: (opp.created_at, opp.id), reverse=True
        )[:limit]
        return [
            OpportunityWithDetails(
                opportunity=opp,
                trading_pair=self._pairs.get(opp.trading_pair_id),
                venue_a=self._venues.get(opp.venue_a_id),
                venue_b=self._venues.get(opp.venue_b_id),
            )
            for opp in ordered
        ]

    async def get_opportunity(self, opportunity_id: int) -> Optional[Opportunity]:
        for opp in self._opportunities:
            if opp.id == opportunity_id:
                return opp
        return None

    async def delete_opportunities_older_than(self, cutoff: datetime) -> int:
        before = len(self._opportunities)
        self._opportunities = tuple(
            opp for opp in self._opportunities if opp.created_at >= cutoff
        )
        return before - len(self._opportunities)

    async def count_opportunities_since(self, cutoff: datetime) -> int:
        return sum(1 for opp in self._opportunities if opp.created_at >= cutoff)

    async def create_transaction(self, transaction: Transaction) -> Transaction:
        stored = replace(transaction, id=next(self._transaction_ids))
        self._transactions.append(stored)
        return stored

    async def list_transactions(self, limit: int) -> List[Transaction]:
        ordered = sorted(
            self._transactions, key=lambda tx: (tx.executed_at, tx.id), reverse=True
        )
        return ordered[:limit]

    async def list_transactions_since(self, cutoff: datetime) -> List[Transaction]:
        return [tx for tx in self._transactions if tx.executed_at > cutoff]

    async def get_settings(self) -> BotSettings:
        if self._settings is None:
            self._settings = BotSettings(id=1, updated_at=datetime.now(timezone.utc))
            self._logger.info("default_settings_created")
        return replace(self._settings)

    async def update_settings(self, changes: Dict[str, Any], updated_at: datetime) -> BotSettings:
        current = await self.get_settings()
        self._settings = replace(current, updated_at=updated_at, **changes)
        return replace(self._settings)
