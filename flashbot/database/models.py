"""Data models for engine entities"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional

# Storage scales: prices and amounts DECIMAL(18, 8), margins DECIMAL(5, 2)
AMOUNT_QUANT = Decimal("0.00000001")
PERCENT_QUANT = Decimal("0.01")

# Exclusive upper bounds of those columns after rounding
AMOUNT_LIMIT = Decimal("10000000000")  # DECIMAL(18, 8)
PERCENT_LIMIT = Decimal("1000")  # DECIMAL(5, 2)
GAS_PRICE_LIMIT = Decimal("100000000")  # DECIMAL(10, 2)


def quantize_amount(value: Decimal) -> Decimal:
    """Round a price or money amount to 8 decimal places"""
    return Decimal(value).quantize(AMOUNT_QUANT, rounding=ROUND_HALF_UP)


def quantize_percent(value: Decimal) -> Decimal:
    """Round a percentage to 2 decimal places"""
    return Decimal(value).quantize(PERCENT_QUANT, rounding=ROUND_HALF_UP)


def fits_storage(opportunity: "Opportunity") -> bool:
    """True if every numeric field of the opportunity fits its column"""
    amounts = (
        opportunity.price_a,
        opportunity.price_b,
        opportunity.estimated_profit,
        opportunity.estimated_cost,
    )
    return opportunity.profit_margin_pct < PERCENT_LIMIT and all(
        amount < AMOUNT_LIMIT for amount in amounts
    )


class TransactionStatus(str, Enum):
    """Lifecycle status of a paper execution"""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class Venue:
    """Trading venue that supplies price quotes"""

    name: str
    api_url: str
    is_active: bool = True
    id: Optional[int] = None


@dataclass
class TradingPair:
    """Base/quote symbol combination tracked across venues"""

    base_symbol: str
    quote_symbol: str
    name: str
    is_active: bool = True
    id: Optional[int] = None


@dataclass(frozen=True)
class PriceQuote:
    """Price observed for one symbol on one venue during a detection cycle"""

    symbol: str
    price: Decimal
    venue_id: int
    observed_at: datetime


@dataclass(frozen=True)
class Opportunity:
    """Detected price discrepancy between two venues for one trading pair"""

    trading_pair_id: int
    venue_a_id: int
    venue_b_id: int
    price_a: Decimal
    price_b: Decimal
    profit_margin_pct: Decimal
    estimated_profit: Decimal
    created_at: datetime
    estimated_cost: Decimal = Decimal("0")
    is_executable: bool = False
    id: Optional[int] = None


@dataclass(frozen=True)
class OpportunityWithDetails:
    """Opportunity joined with its trading pair and both venues"""

    opportunity: Opportunity
    trading_pair: Optional[TradingPair]
    venue_a: Optional[Venue]
    venue_b: Optional[Venue]


@dataclass(frozen=True)
class Transaction:
    """Recorded outcome of a paper execution"""

    opportunity_id: int
    status: TransactionStatus
    executed_at: datetime
    tx_hash: Optional[str] = None
    actual_profit: Optional[Decimal] = None
    gas_used: Optional[Decimal] = None
    id: Optional[int] = None


@dataclass
class BotSettings:
    """Singleton bot configuration"""

    min_profit_threshold: Decimal = Decimal("1.5")
    max_gas_price: Decimal = Decimal("50")
    trade_amount: Decimal = Decimal("1000")
    slippage_tolerance: Decimal = Decimal("0.5")
    auto_execute_enabled: bool = True
    alerts_enabled: bool = True
    updated_at: Optional[datetime] = None
    id: Optional[int] = None


# Fields callers may change through update_settings()
UPDATABLE_SETTINGS_FIELDS = (
    "min_profit_threshold",
    "max_gas_price",
    "trade_amount",
    "slippage_tolerance",
    "auto_execute_enabled",
    "alerts_enabled",
)


@dataclass(frozen=True)
class StatsOverview:
    """Rolling statistics derived from transactions and opportunities"""

    total_profit_24h: Decimal
    active_opportunities: int
    success_rate: Decimal
    gas_spent_24h: Decimal
    scanned_pairs: int
    computed_at: Optional[datetime] = field(default=None, compare=False)
