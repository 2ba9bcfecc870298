"""Engine facade wiring detection, storage, execution and statistics"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Mapping, Optional

import structlog

from flashbot.analytics.stats_aggregator import StatsAggregator
from flashbot.config.models import EngineConfig
from flashbot.database.models import (
    BotSettings,
    OpportunityWithDetails,
    StatsOverview,
    TradingPair,
    Transaction,
    Venue,
)
from flashbot.database.repository import Repository
from flashbot.database.seed import seed_default_data
from flashbot.detectors.executability import (
    CostModel,
    ExecutabilityClassifier,
    RandomCostModel,
    check_thresholds,
)
from flashbot.detectors.opportunity_detector import OpportunityDetector
from flashbot.errors import NotFound, SourceUnavailable
from flashbot.monitoring import metrics
from flashbot.services.execution import ExecutionSimulator, OutcomePolicy, RandomOutcomePolicy
from flashbot.services.opportunity_store import OpportunityStore
from flashbot.services.settings import validate_settings_update
from flashbot.sources.quote_source import QuoteSource

logger = structlog.get_logger()


@dataclass(frozen=True)
class DetectionCycleResult:
    """Summary of one detection cycle"""

    skipped: bool
    detected: int = 0
    executable: int = 0
    reason: Optional[str] = None


class ArbitrageEngine:
    """
    Public surface of the engine.

    Detection cycles are serialized by a lock shared between the scheduler
    and manual triggers. A cycle computes its whole generation before the
    single store write, so a cancelled cycle leaves the store untouched.
    Execution and reads do not take the cycle lock.
    """

    def __init__(
        self,
        repository: Repository,
        quote_source: QuoteSource,
        config: Optional[EngineConfig] = None,
        detector: Optional[OpportunityDetector] = None,
        cost_model: Optional[CostModel] = None,
        outcome_policy: Optional[OutcomePolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize engine.

        Args:
            repository: Persistence backend
            quote_source: Price feed polled each cycle
            config: Engine tuning parameters
            detector: Opportunity detector (built from config if omitted)
            cost_model: Execution cost estimator (random 2..12 if omitted)
            outcome_policy: Paper execution outcome policy
            clock: Returns the current UTC time (injectable for tests)
        """
        self.config = config or EngineConfig()
        self.repository = repository
        self.quote_source = quote_source
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self.detector = detector or OpportunityDetector(
            min_margin_pct=self.config.min_margin_pct, clock=self._clock
        )
        self.cost_model = cost_model or RandomCostModel()
        self.store = OpportunityStore(
            repository,
            retention=timedelta(minutes=self.config.retention_minutes),
            clock=self._clock,
        )
        self.simulator = ExecutionSimulator(
            repository,
            outcome_policy or RandomOutcomePolicy(self.config.success_probability),
            self.store,
            clock=self._clock,
        )
        self.stats_aggregator = StatsAggregator(
            repository,
            self.store,
            window=timedelta(hours=self.config.stats_window_hours),
            clock=self._clock,
        )

        self._cycle_lock = asyncio.Lock()
        self._logger = logger.bind(component="arbitrage_engine")

    async def initialize_default_data(self) -> bool:
        """Seed default venues and trading pairs into an empty repository"""
        return await seed_default_data(self.repository)

    async def check_configuration(self) -> None:
        """
        Verify the stored executable threshold against the detection filter.

        Called once at startup, before the scheduler runs any cycle.

        Raises:
            ConfigInvalid: If min_profit_threshold does not exceed the filter
        """
        settings = await self.repository.get_settings()
        check_thresholds(settings.min_profit_threshold, self.detector.min_margin_pct)
        self._logger.info(
            "configuration_checked",
            min_profit_threshold=str(settings.min_profit_threshold),
            min_margin_pct=str(self.detector.min_margin_pct),
        )

    async def trigger_detection_cycle(self) -> DetectionCycleResult:
        """
        Run one detection cycle: fetch quotes, detect, classify, replace.

        Waits for a running cycle to finish first. An unavailable quote
        source skips the cycle and leaves the store as it was.
        """
        async with self._cycle_lock:
            start_time = time.time()
            venues = await self.repository.list_venues(active_only=True)
            pairs = await self.repository.list_trading_pairs(active_only=True)
            settings = await self.repository.get_settings()
            symbols = sorted({pair.base_symbol.upper() for pair in pairs})

            try:
                quotes = await self.quote_source.fetch_quotes(symbols, venues)
            except SourceUnavailable as e:
                metrics.detection_cycles.labels(outcome="skipped").inc()
                self._logger.warning("detection_cycle_skipped", reason=str(e))
                return DetectionCycleResult(skipped=True, reason=str(e))

            candidates = self.detector.detect(
                quotes, pairs, trade_amount=settings.trade_amount
            )
            classifier = ExecutabilityClassifier(
                self.cost_model,
                executable_margin_pct=settings.min_profit_threshold,
                detection_margin_pct=self.detector.min_margin_pct,
            )
            annotated = classifier.annotate(candidates, settings.trade_amount)
            inserted = await self.store.replace_generation(annotated)

            executable = sum(1 for opp in inserted if opp.is_executable)
            duration = time.time() - start_time
            metrics.detection_cycles.labels(outcome="completed").inc()
            metrics.detection_cycle_latency.observe(duration)
            self._logger.info(
                "detection_cycle_completed",
                venue_count=len(venues),
                pair_count=len(pairs),
                quote_count=len(quotes),
                detected=len(inserted),
                executable=executable,
                duration_seconds=duration,
            )
            return DetectionCycleResult(
                skipped=False, detected=len(inserted), executable=executable
            )

    async def expire_opportunities(self) -> int:
        """Drop opportunities past the retention window"""
        return await self.store.expire()

    async def list_opportunities(self, limit: Optional[int] = None) -> List[OpportunityWithDetails]:
        """Newest opportunities first (default limit 50)"""
        if limit is None:
            limit = self.config.default_opportunity_limit
        return await self.store.list(limit)

    async def get_opportunity(self, opportunity_id: int) -> OpportunityWithDetails:
        """
        Fetch one non-expired opportunity with its pair and venues.

        Raises:
            NotFound: If the id is unknown or already past retention
        """
        opportunity = await self.store.get_active(opportunity_id)
        if opportunity is None:
            raise NotFound(f"Opportunity {opportunity_id} not found")

        venues = {v.id: v for v in await self.repository.list_venues(active_only=False)}
        pairs = {p.id: p for p in await self.repository.list_trading_pairs(active_only=False)}
        return OpportunityWithDetails(
            opportunity=opportunity,
            trading_pair=pairs.get(opportunity.trading_pair_id),
            venue_a=venues.get(opportunity.venue_a_id),
            venue_b=venues.get(opportunity.venue_b_id),
        )

    async def list_transactions(self, limit: Optional[int] = None) -> List[Transaction]:
        """Newest transactions first (default limit 10)"""
        if limit is None:
            limit = self.config.default_transaction_limit
        if limit < 1:
            raise ValueError("limit must be at least 1")
        return await self.repository.list_transactions(limit)

    async def execute_opportunity(self, opportunity_id: int) -> Transaction:
        """Paper-execute an opportunity; unknown ids still yield a transaction"""
        return await self.simulator.execute(opportunity_id)

    async def get_stats_overview(self) -> StatsOverview:
        return await self.stats_aggregator.collect()

    async def get_settings(self) -> BotSettings:
        return await self.repository.get_settings()

    async def update_settings(self, changes: Mapping[str, Any]) -> BotSettings:
        """
        Apply a partial settings update.

        Raises:
            ConfigInvalid: If any field is unknown or out of range; nothing
                is applied in that case
        """
        validated = validate_settings_update(changes, self.detector.min_margin_pct)
        if not validated:
            return await self.repository.get_settings()

        updated = await self.repository.update_settings(validated, self._clock())
        self._logger.info(
            "settings_updated",
            fields=sorted(validated),
        )
        return updated

    async def list_venues(self) -> List[Venue]:
        return await self.repository.list_venues(active_only=True)

    async def list_trading_pairs(self) -> List[TradingPair]:
        return await self.repository.list_trading_pairs(active_only=True)

    async def close(self) -> None:
        """Release the quote source"""
        await self.quote_source.close()
