"""Transactions and execution endpoints"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel, Field
import structlog

from flashbot.api.dependencies import format_amount, get_engine, verify_api_key
from flashbot.database.models import Transaction
from flashbot.engine import ArbitrageEngine

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["transactions"])


class TransactionResponse(BaseModel):
    """Transaction response model"""

    id: int
    opportunity_id: int
    status: str = Field(description="pending, success or failed")
    tx_hash: Optional[str] = Field(None, description="Synthetic hash, set on success only")
    actual_profit: Optional[str] = Field(None, description="Realized profit, set on success only")
    gas_used: Optional[str] = Field(None, description="Execution cost")
    executed_at: datetime


def to_transaction_response(tx: Transaction) -> TransactionResponse:
    return TransactionResponse(
        id=tx.id,
        opportunity_id=tx.opportunity_id,
        status=tx.status.value,
        tx_hash=tx.tx_hash,
        actual_profit=format_amount(tx.actual_profit),
        gas_used=format_amount(tx.gas_used),
        executed_at=tx.executed_at,
    )


@router.get("/transactions", response_model=List[TransactionResponse])
async def get_transactions(
    limit: int = Query(10, ge=1, le=1000, description="Maximum number of results"),
    engine: ArbitrageEngine = Depends(get_engine),
    api_key: str = Depends(verify_api_key),
) -> List[TransactionResponse]:
    """
    Get recent paper executions, newest first.

    Requires authentication via X-API-Key header.
    """
    try:
        transactions = await engine.list_transactions(limit)
    except Exception as e:
        logger.error("transactions_query_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to query transactions")

    return [to_transaction_response(tx) for tx in transactions]


@router.post("/execute/{opportunity_id}", response_model=TransactionResponse)
async def execute_opportunity(
    opportunity_id: int = Path(..., ge=1, description="Opportunity to execute"),
    engine: ArbitrageEngine = Depends(get_engine),
    api_key: str = Depends(verify_api_key),
) -> TransactionResponse:
    """
    Paper-execute an opportunity and record the transaction.

    Unknown or expired ids still produce a transaction.

    Requires authentication via X-API-Key header.
    """
    try:
        transaction = await engine.execute_opportunity(opportunity_id)
    except Exception as e:
        logger.error("execution_failed", opportunity_id=opportunity_id, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to execute opportunity")

    return to_transaction_response(transaction)
