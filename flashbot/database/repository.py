"""Persistence interface consumed by the engine"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from flashbot.database.models import (
    BotSettings,
    Opportunity,
    OpportunityWithDetails,
    TradingPair,
    Transaction,
    Venue,
)


class Repository(ABC):
    """
    Durable storage for venues, trading pairs, opportunities, transactions
    and the bot settings singleton.

    Implementations must make replace_opportunities() atomic from a reader's
    point of view: a concurrent list_opportunities() sees either the state
    before the call or the state after it.
    """

    # Venues

    @abstractmethod
    async def create_venue(self, venue: Venue) -> Venue:
        """Insert a venue and return it with its id assigned"""

    @abstractmethod
    async def list_venues(self, active_only: bool = True) -> List[Venue]:
        """List venues, by default only active ones"""

    # Trading pairs

    @abstractmethod
    async def create_trading_pair(self, pair: TradingPair) -> TradingPair:
        """Insert a trading pair and return it with its id assigned"""

    @abstractmethod
    async def list_trading_pairs(self, active_only: bool = True) -> List[TradingPair]:
        """List trading pairs, by default only active ones"""

    # Opportunities

    @abstractmethod
    async def replace_opportunities(
        self, opportunities: Sequence[Opportunity], cutoff: datetime
    ) -> List[Opportunity]:
        """
        Delete opportunities created before cutoff and insert the new batch
        in one atomic step.

        Returns:
            The inserted opportunities with ids assigned
        """

    @abstractmethod
    async def list_opportunities(
        self, limit: int, since: Optional[datetime] = None
    ) -> List[OpportunityWithDetails]:
        """
        List opportunities newest first, joined with pair and venues.

        When since is given, only entries created at or after it are listed.
        """

    @abstractmethod
    async def get_opportunity(self, opportunity_id: int) -> Optional[Opportunity]:
        """Fetch one opportunity or None"""

    @abstractmethod
    async def delete_opportunities_older_than(self, cutoff: datetime) -> int:
        """Delete opportunities created before cutoff, return the count"""

    @abstractmethod
    async def count_opportunities_since(self, cutoff: datetime) -> int:
        """Count opportunities created at or after cutoff"""

    # Transactions

    @abstractmethod
    async def create_transaction(self, transaction: Transaction) -> Transaction:
        """Append a transaction and return it with its id assigned"""

    @abstractmethod
    async def list_transactions(self, limit: int) -> List[Transaction]:
        """List transactions newest first"""

    @abstractmethod
    async def list_transactions_since(self, cutoff: datetime) -> List[Transaction]:
        """List transactions executed after cutoff"""

    # Settings

    @abstractmethod
    async def get_settings(self) -> BotSettings:
        """Return the settings singleton, creating it with defaults if absent"""

    @abstractmethod
    async def update_settings(self, changes: Dict[str, Any], updated_at: datetime) -> BotSettings:
        """Apply already-validated changes to the settings singleton"""
