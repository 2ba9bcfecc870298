"""Paper execution of detected opportunities"""

import random
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional, Tuple

import structlog

from flashbot.database.models import (
    Opportunity,
    Transaction,
    TransactionStatus,
    quantize_amount,
)
from flashbot.database.repository import Repository
from flashbot.errors import ConfigInvalid
from flashbot.monitoring import metrics
from flashbot.services.opportunity_store import OpportunityStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class ExecutionOutcome:
    """Result decided for one simulated execution"""

    success: bool
    actual_profit: Decimal
    cost: Decimal


class OutcomePolicy(ABC):
    """Decides how a simulated execution turns out"""

    @abstractmethod
    def decide(self, opportunity: Optional[Opportunity]) -> ExecutionOutcome:
        """Return the outcome; opportunity is None for unknown ids"""


class RandomOutcomePolicy(OutcomePolicy):
    """Succeeds with a fixed probability, profit and cost drawn uniformly"""

    def __init__(
        self,
        success_probability: float = 0.9,
        profit_range: Tuple[Decimal, Decimal] = (Decimal("20"), Decimal("120")),
        cost_range: Tuple[Decimal, Decimal] = (Decimal("2"), Decimal("12")),
        rng: Optional[random.Random] = None,
    ):
        if not 0 <= success_probability <= 1:
            raise ConfigInvalid(
                f"success_probability must be within [0, 1], got {success_probability}",
                field="success_probability",
            )
        for name, (low, high) in (("profit_range", profit_range), ("cost_range", cost_range)):
            if low < 0 or high < low:
                raise ConfigInvalid(f"Invalid {name}: {low}..{high}", field=name)

        self.success_probability = success_probability
        self.profit_range = (Decimal(str(profit_range[0])), Decimal(str(profit_range[1])))
        self.cost_range = (Decimal(str(cost_range[0])), Decimal(str(cost_range[1])))
        self._rng = rng or random.Random()

    def _uniform(self, bounds: Tuple[Decimal, Decimal]) -> Decimal:
        low, high = bounds
        return quantize_amount(low + (high - low) * Decimal(str(self._rng.random())))

    def decide(self, opportunity: Optional[Opportunity]) -> ExecutionOutcome:
        success = self._rng.random() < self.success_probability
        return ExecutionOutcome(
            success=success,
            actual_profit=self._uniform(self.profit_range),
            cost=self._uniform(self.cost_range),
        )


class FixedOutcomePolicy(OutcomePolicy):
    """Always returns the same outcome"""

    def __init__(self, success: bool, actual_profit: Decimal, cost: Decimal):
        self.outcome = ExecutionOutcome(
            success=success,
            actual_profit=quantize_amount(Decimal(str(actual_profit))),
            cost=quantize_amount(Decimal(str(cost))),
        )

    def decide(self, opportunity: Optional[Opportunity]) -> ExecutionOutcome:
        return self.outcome


def generate_tx_hash() -> str:
    """Synthetic transaction hash: 0x followed by 64 hex characters"""
    return "0x" + secrets.token_hex(32)


class ExecutionSimulator:
    """
    Records paper executions as transactions.

    Execution is best-effort: an id that is unknown or already expired still
    produces a transaction, so callers get the same behavior for every id.
    """

    def __init__(
        self,
        repository: Repository,
        outcome_policy: OutcomePolicy,
        store: OpportunityStore,
        clock: Optional[Callable[[], datetime]] = None,
        hash_factory: Callable[[], str] = generate_tx_hash,
    ):
        self.repository = repository
        self.outcome_policy = outcome_policy
        self.store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._hash_factory = hash_factory
        self._logger = logger.bind(component="execution_simulator")

    async def execute(self, opportunity_id: int) -> Transaction:
        """
        Simulate executing an opportunity and append the transaction.

        Args:
            opportunity_id: Id of the opportunity to execute

        Returns:
            The recorded transaction with its id assigned
        """
        opportunity = await self.store.get(opportunity_id)
        if opportunity is None:
            self._logger.info("execution_unknown_opportunity", opportunity_id=opportunity_id)

        outcome = self.outcome_policy.decide(opportunity)
        status = TransactionStatus.SUCCESS if outcome.success else TransactionStatus.FAILED

        transaction = Transaction(
            opportunity_id=opportunity_id,
            status=status,
            executed_at=self._clock(),
            tx_hash=self._hash_factory() if outcome.success else None,
            actual_profit=outcome.actual_profit if outcome.success else None,
            gas_used=outcome.cost,
        )
        recorded = await self.repository.create_transaction(transaction)

        metrics.executions_total.labels(status=status.value).inc()
        self._logger.info(
            "opportunity_executed",
            opportunity_id=opportunity_id,
            transaction_id=recorded.id,
            status=status.value,
            actual_profit=str(recorded.actual_profit) if recorded.actual_profit is not None else None,
            gas_used=str(recorded.gas_used),
        )
        return recorded
