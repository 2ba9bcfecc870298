"""Database manager with connection pooling and retry logic"""

import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import asyncpg
import structlog

from flashbot.database.models import (
    UPDATABLE_SETTINGS_FIELDS,
    BotSettings,
    Opportunity,
    OpportunityWithDetails,
    TradingPair,
    Transaction,
    TransactionStatus,
    Venue,
)
from flashbot.database.repository import Repository
from flashbot.database.schema import get_schema_sql

logger = structlog.get_logger()


def _row_to_venue(row, prefix: str = "") -> Venue:
    return Venue(
        id=row[f"{prefix}id"],
        name=row[f"{prefix}name"],
        api_url=row[f"{prefix}api_url"],
        is_active=row[f"{prefix}is_active"],
    )


def _row_to_pair(row, prefix: str = "") -> TradingPair:
    return TradingPair(
        id=row[f"{prefix}id"],
        base_symbol=row[f"{prefix}base_symbol"],
        quote_symbol=row[f"{prefix}quote_symbol"],
        name=row[f"{prefix}name"],
        is_active=row[f"{prefix}is_active"],
    )


def _row_to_opportunity(row) -> Opportunity:
    return Opportunity(
        id=row["id"],
        trading_pair_id=row["trading_pair_id"],
        venue_a_id=row["venue_a_id"],
        venue_b_id=row["venue_b_id"],
        price_a=row["price_a"],
        price_b=row["price_b"],
        profit_margin_pct=row["profit_margin"],
        estimated_profit=row["estimated_profit"],
        estimated_cost=row["gas_estimate"],
        is_executable=row["is_executable"],
        created_at=row["created_at"],
    )


def _row_to_transaction(row) -> Transaction:
    return Transaction(
        id=row["id"],
        opportunity_id=row["opportunity_id"],
        status=TransactionStatus(row["status"]),
        tx_hash=row["tx_hash"],
        actual_profit=row["actual_profit"],
        gas_used=row["gas_used"],
        executed_at=row["executed_at"],
    )


def _row_to_settings(row) -> BotSettings:
    return BotSettings(
        id=row["id"],
        min_profit_threshold=row["min_profit_threshold"],
        max_gas_price=row["max_gas_price"],
        trade_amount=row["trade_amount"],
        slippage_tolerance=row["slippage_tolerance"],
        auto_execute_enabled=row["auto_execute_enabled"],
        alerts_enabled=row["alerts_enabled"],
        updated_at=row["updated_at"],
    )


class DatabaseManager(Repository):
    """
    Manages PostgreSQL database connections and operations with connection pooling.

    Features:
    - Connection pooling (min 2, max 10 connections)
    - Automatic retry logic for transient failures (3 attempts with exponential backoff)
    - Parameterized queries to prevent SQL injection
    - Opportunity generations replaced inside a single database transaction
    """

    def __init__(self, database_url: str, min_pool_size: int = 2, max_pool_size: int = 10):
        """
        Initialize database manager.

        Args:
            database_url: PostgreSQL connection URL
            min_pool_size: Minimum number of connections in pool
            max_pool_size: Maximum number of connections in pool
        """
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.pool: Optional[asyncpg.Pool] = None
        self._logger = logger.bind(component="database_manager")

    async def connect(self) -> None:
        """Establish connection pool to database"""
        try:
            self.pool = await asyncpg.create_pool(
                self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=60,
            )
            self._logger.info(
                "database_connected",
                min_pool_size=self.min_pool_size,
                max_pool_size=self.max_pool_size,
            )
        except Exception as e:
            self._logger.error("database_connection_failed", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close connection pool"""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self._logger.info("database_disconnected")

    async def initialize_schema(self) -> None:
        """Initialize database schema"""
        if not self.pool:
            raise RuntimeError("Database pool not initialized. Call connect() first.")

        schema_sql = get_schema_sql()
        async with self.pool.acquire() as conn:
            await conn.execute(schema_sql)
            self._logger.info("database_schema_initialized")

    def _require_pool(self) -> asyncpg.Pool:
        if not self.pool:
            raise RuntimeError("Database pool not initialized")
        return self.pool

    async def _retry_operation(self, operation, *args, **kwargs):
        """
        Retry database operation with exponential backoff.

        Args:
            operation: Async function to retry
            *args: Positional arguments for operation
            **kwargs: Keyword arguments for operation

        Returns:
            Result of operation

        Raises:
            Exception: If all retry attempts fail
        """
        max_attempts = 3
        base_delay = 0.5  # seconds

        for attempt in range(1, max_attempts + 1):
            try:
                return await operation(*args, **kwargs)
            except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
                if attempt == max_attempts:
                    self._logger.error(
                        "database_operation_failed",
                        operation=operation.__name__,
                        attempts=attempt,
                        error=str(e),
                    )
                    raise

                delay = base_delay * (2 ** (attempt - 1))
                self._logger.warning(
                    "database_operation_retry",
                    operation=operation.__name__,
                    attempt=attempt,
                    delay=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)

    # Venues

    async def create_venue(self, venue: Venue) -> Venue:
        pool = self._require_pool()

        async def _save():
            async with pool.acquire() as conn:
                return await conn.fetchrow(
                    """
                    INSERT INTO venues (name, api_url, is_active)
                    VALUES ($1, $2, $3)
                    RETURNING *
                    """,
                    venue.name,
                    venue.api_url,
                    venue.is_active,
                )

        row = await self._retry_operation(_save)
        self._logger.info("venue_saved", venue_id=row["id"], name=venue.name)
        return _row_to_venue(row)

    async def list_venues(self, active_only: bool = True) -> List[Venue]:
        pool = self._require_pool()
        query = "SELECT * FROM venues"
        if active_only:
            query += " WHERE is_active = true"
        query += " ORDER BY id"

        async with pool.acquire() as conn:
            rows = await conn.fetch(query)
        return [_row_to_venue(row) for row in rows]

    # Trading pairs

    async def create_trading_pair(self, pair: TradingPair) -> TradingPair:
        pool = self._require_pool()

        async def _save():
            async with pool.acquire() as conn:
                return await conn.fetchrow(
                    """
                    INSERT INTO trading_pairs (base_symbol, quote_symbol, name, is_active)
                    VALUES ($1, $2, $3, $4)
                    RETURNING *
                    """,
                    pair.base_symbol,
                    pair.quote_symbol,
                    pair.name,
                    pair.is_active,
                )

        row = await self._retry_operation(_save)
        self._logger.info("trading_pair_saved", trading_pair_id=row["id"], name=pair.name)
        return _row_to_pair(row)

    async def list_trading_pairs(self, active_only: bool = True) -> List[TradingPair]:
        pool = self._require_pool()
        query = "SELECT * FROM trading_pairs"
        if active_only:
            query += " WHERE is_active = true"
        query += " ORDER BY id"

        async with pool.acquire() as conn:
            rows = await conn.fetch(query)
        return [_row_to_pair(row) for row in rows]

    # Opportunities

    async def replace_opportunities(
        self, opportunities: Sequence[Opportunity], cutoff: datetime
    ) -> List[Opportunity]:
        pool = self._require_pool()

        async def _replace():
            async with pool.acquire() as conn:
                async with conn.transaction():
                    result = await conn.execute(
                        "DELETE FROM arbitrage_opportunities WHERE created_at < $1",
                        cutoff,
                    )
                    inserted = []
                    for opp in opportunities:
                        row = await conn.fetchrow(
                            """
                            INSERT INTO arbitrage_opportunities (
                                trading_pair_id, venue_a_id, venue_b_id, price_a, price_b,
                                profit_margin, estimated_profit, gas_estimate,
                                is_executable, created_at
                            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                            RETURNING *
                            """,
                            opp.trading_pair_id,
                            opp.venue_a_id,
                            opp.venue_b_id,
                            opp.price_a,
                            opp.price_b,
                            opp.profit_margin_pct,
                            opp.estimated_profit,
                            opp.estimated_cost,
                            opp.is_executable,
                            opp.created_at,
                        )
                        inserted.append(_row_to_opportunity(row))
                    # Result string looks like "DELETE 42"
                    deleted = int(result.split()[-1]) if result else 0
                    return deleted, inserted

        deleted, inserted = await self._retry_operation(_replace)
        self._logger.info(
            "opportunity_generation_replaced",
            deleted=deleted,
            inserted=len(inserted),
        )
        return inserted

    async def list_opportunities(
        self, limit: int, since: Optional[datetime] = None
    ) -> List[OpportunityWithDetails]:
        pool = self._require_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT o.*,
                       p.id AS p_id, p.base_symbol AS p_base_symbol,
                       p.quote_symbol AS p_quote_symbol, p.name AS p_name,
                       p.is_active AS p_is_active,
                       va.id AS va_id, va.name AS va_name,
                       va.api_url AS va_api_url, va.is_active AS va_is_active,
                       vb.id AS vb_id, vb.name AS vb_name,
                       vb.api_url AS vb_api_url, vb.is_active AS vb_is_active
                FROM arbitrage_opportunities o
                LEFT JOIN trading_pairs p ON p.id = o.trading_pair_id
                LEFT JOIN venues va ON va.id = o.venue_a_id
                LEFT JOIN venues vb ON vb.id = o.venue_b_id
                WHERE $2::timestamptz IS NULL OR o.created_at >= $2
                ORDER BY o.created_at DESC, o.id DESC
                LIMIT $1
                """,
                limit,
                since,
            )

        return [
            OpportunityWithDetails(
                opportunity=_row_to_opportunity(row),
                trading_pair=_row_to_pair(row, "p_") if row["p_id"] is not None else None,
                venue_a=_row_to_venue(row, "va_") if row["va_id"] is not None else None,
                venue_b=_row_to_venue(row, "vb_") if row["vb_id"] is not None else None,
            )
            for row in rows
        ]

    async def get_opportunity(self, opportunity_id: int) -> Optional[Opportunity]:
        pool = self._require_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM arbitrage_opportunities WHERE id = $1",
                opportunity_id,
            )
        return _row_to_opportunity(row) if row else None

    async def delete_opportunities_older_than(self, cutoff: datetime) -> int:
        pool = self._require_pool()

        async def _delete():
            async with pool.acquire() as conn:
                return await conn.execute(
                    "DELETE FROM arbitrage_opportunities WHERE created_at < $1",
                    cutoff,
                )

        result = await self._retry_operation(_delete)
        return int(result.split()[-1]) if result else 0

    async def count_opportunities_since(self, cutoff: datetime) -> int:
        pool = self._require_pool()
        async with pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT COUNT(*) FROM arbitrage_opportunities WHERE created_at >= $1",
                cutoff,
            )

    # Transactions

    async def create_transaction(self, transaction: Transaction) -> Transaction:
        pool = self._require_pool()

        async def _save():
            async with pool.acquire() as conn:
                return await conn.fetchrow(
                    """
                    INSERT INTO transactions (
                        opportunity_id, status, tx_hash, actual_profit, gas_used, executed_at
                    ) VALUES ($1, $2, $3, $4, $5, $6)
                    RETURNING *
                    """,
                    transaction.opportunity_id,
                    transaction.status.value,
                    transaction.tx_hash,
                    transaction.actual_profit,
                    transaction.gas_used,
                    transaction.executed_at,
                )

        row = await self._retry_operation(_save)
        self._logger.info(
            "transaction_saved",
            transaction_id=row["id"],
            opportunity_id=transaction.opportunity_id,
            status=transaction.status.value,
        )
        return _row_to_transaction(row)

    async def list_transactions(self, limit: int) -> List[Transaction]:
        pool = self._require_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT * FROM transactions ORDER BY executed_at DESC, id DESC LIMIT $1",
                limit,
            )
        return [_row_to_transaction(row) for row in rows]

    async def list_transactions_since(self, cutoff: datetime) -> List[Transaction]:
        pool = self._require_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT * FROM transactions WHERE executed_at > $1",
                cutoff,
            )
        return [_row_to_transaction(row) for row in rows]

    # Settings

    async def get_settings(self) -> BotSettings:
        pool = self._require_pool()

        async def _get_or_create():
            async with pool.acquire() as conn:
                async with conn.transaction():
                    row = await conn.fetchrow(
                        "SELECT * FROM bot_settings ORDER BY id LIMIT 1 FOR UPDATE"
                    )
                    if row is None:
                        row = await conn.fetchrow(
                            "INSERT INTO bot_settings DEFAULT VALUES RETURNING *"
                        )
                        self._logger.info("default_settings_created", settings_id=row["id"])
                    return row

        row = await self._retry_operation(_get_or_create)
        return _row_to_settings(row)

    async def update_settings(self, changes: Dict[str, Any], updated_at: datetime) -> BotSettings:
        pool = self._require_pool()
        current = await self.get_settings()

        # Column names come from a fixed whitelist, never from caller input
        columns = [name for name in UPDATABLE_SETTINGS_FIELDS if name in changes]
        assignments = [f"{name} = ${index}" for index, name in enumerate(columns, start=1)]
        params = [changes[name] for name in columns]
        assignments.append(f"updated_at = ${len(params) + 1}")
        params.append(updated_at)
        params.append(current.id)

        async def _update():
            async with pool.acquire() as conn:
                return await conn.fetchrow(
                    f"UPDATE bot_settings SET {', '.join(assignments)} "
                    f"WHERE id = ${len(params)} RETURNING *",
                    *params,
                )

        row = await self._retry_operation(_update)
        self._logger.info("settings_updated", fields=columns)
        return _row_to_settings(row)

    async def get_pool_size(self) -> int:
        """Get current connection pool size"""
        if not self.pool:
            return 0
        return self.pool.get_size()

    async def get_pool_free_size(self) -> int:
        """Get number of free connections in pool"""
        if not self.pool:
            return 0
        return self.pool.get_idle_size()
