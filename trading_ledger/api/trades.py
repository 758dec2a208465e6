"""
Trade endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, Request

from .dependencies import current_username, get_ledger_system, http_error
from .schemas import TradeRequest, to_json
from ..errors import LedgerError
from ..system import LedgerSystem


router = APIRouter()


@router.post("/trade")
def submit_trade(
    request: TradeRequest,
    http_request: Request,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Settle a trade and return its result and profit"""
    try:
        settlement = system.settlement_engine.settle_trade(
            username=request.username or current_username(http_request),
            symbol=request.symbol,
            side=request.side,
            amount=request.amount,
            percent=request.percent
        )
    except LedgerError as e:
        raise http_error(e)

    return settlement.to_dict()


@router.get("/trades")
def list_trades(
    username: Optional[str] = None,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Trade history, newest first"""
    return [to_json(trade) for trade in system.settlement_engine.list_trades(username)]
