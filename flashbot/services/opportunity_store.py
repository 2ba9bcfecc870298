"""Retention-bounded store of the current opportunity generation"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

import structlog

from flashbot.database.models import Opportunity, OpportunityWithDetails
from flashbot.database.repository import Repository
from flashbot.monitoring import metrics

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OpportunityStore:
    """
    Holds detected opportunities for a bounded retention window.

    Writes are serialized by an internal lock. Each detection cycle replaces
    its generation through a single repository call, so readers never observe
    a half-written cycle.
    """

    def __init__(
        self,
        repository: Repository,
        retention: timedelta = timedelta(minutes=60),
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize opportunity store.

        Args:
            repository: Backing storage
            retention: Entries created before now - retention are stale
            clock: Returns the current UTC time (injectable for tests)
        """
        if retention <= timedelta(0):
            raise ValueError("retention must be positive")
        self.repository = repository
        self.retention = retention
        self._clock = clock or _utcnow
        self._write_lock = asyncio.Lock()
        self._logger = logger.bind(component="opportunity_store")

    def _cutoff(self) -> datetime:
        return self._clock() - self.retention

    async def replace_generation(self, opportunities: Sequence[Opportunity]) -> List[Opportunity]:
        """
        Drop stale entries and insert a new generation in one atomic step.

        An empty batch is valid and only expires stale entries.

        Returns:
            The inserted opportunities with ids assigned
        """
        async with self._write_lock:
            cutoff = self._cutoff()
            inserted = await self.repository.replace_opportunities(opportunities, cutoff)
            active = await self.repository.count_opportunities_since(cutoff)

        metrics.active_opportunities.set(active)
        self._logger.info(
            "opportunity_generation_replaced",
            inserted=len(inserted),
            active=active,
            cutoff=cutoff.isoformat(),
        )
        return inserted

    async def list(self, limit: int = 50) -> List[OpportunityWithDetails]:
        """
        List non-expired opportunities newest first with pair and venue details.

        Entries past the retention window are hidden even before expire()
        physically removes them.
        """
        if limit < 1:
            raise ValueError("limit must be at least 1")
        return await self.repository.list_opportunities(limit, since=self._cutoff())

    async def expire(self) -> int:
        """
        Remove entries older than the retention window.

        Idempotent: a second call with no new stale entries removes nothing.

        Returns:
            Number of entries removed
        """
        async with self._write_lock:
            cutoff = self._cutoff()
            removed = await self.repository.delete_opportunities_older_than(cutoff)
            active = await self.repository.count_opportunities_since(cutoff)

        metrics.active_opportunities.set(active)
        if removed:
            metrics.opportunities_expired.inc(removed)
            self._logger.info("opportunities_expired", removed=removed, active=active)
        return removed

    async def get(self, opportunity_id: int) -> Optional[Opportunity]:
        """Best-effort lookup; None when absent or already expired"""
        return await self.repository.get_opportunity(opportunity_id)

    async def get_active(self, opportunity_id: int) -> Optional[Opportunity]:
        """Lookup that also treats entries past the retention window as absent"""
        opportunity = await self.repository.get_opportunity(opportunity_id)
        if opportunity is None or opportunity.created_at < self._cutoff():
            return None
        return opportunity

    async def count_active(self) -> int:
        """Count entries inside the retention window"""
        return await self.repository.count_opportunities_since(self._cutoff())
