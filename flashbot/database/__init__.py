"""Persistence layer: entity models and repositories"""

from flashbot.database.manager import DatabaseManager
from flashbot.database.memory import InMemoryRepository
from flashbot.database.models import (
    BotSettings,
    Opportunity,
    OpportunityWithDetails,
    PriceQuote,
    StatsOverview,
    TradingPair,
    Transaction,
    TransactionStatus,
    Venue,
)
from flashbot.database.repository import Repository
from flashbot.database.schema import get_schema_sql

__all__ = [
    "DatabaseManager",
    "InMemoryRepository",
    "Repository",
    "get_schema_sql",
    "BotSettings",
    "Opportunity",
    "OpportunityWithDetails",
    "PriceQuote",
    "StatsOverview",
    "TradingPair",
    "Transaction",
    "TransactionStatus",
    "Venue",
]
