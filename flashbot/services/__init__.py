"""Services for opportunity storage, execution and scheduling"""

from flashbot.services.execution import (
    ExecutionOutcome,
    ExecutionSimulator,
    FixedOutcomePolicy,
    OutcomePolicy,
    RandomOutcomePolicy,
)
from flashbot.services.opportunity_store import OpportunityStore
from flashbot.services.scheduler import PeriodicScheduler
from flashbot.services.settings import validate_settings_update

__all__ = [
    "ExecutionOutcome",
    "ExecutionSimulator",
    "FixedOutcomePolicy",
    "OpportunityStore",
    "OutcomePolicy",
    "PeriodicScheduler",
    "RandomOutcomePolicy",
    "validate_settings_update",
]
