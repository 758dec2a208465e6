"""
Market data relay endpoints

Plain ``def`` routes: the upstream calls block, so FastAPI runs them in its
threadpool instead of on the event loop.
"""

import json
from typing import Optional
from fastapi import APIRouter, Depends

from .dependencies import get_ledger_system, http_error
from ..errors import LedgerError, ValidationError
from ..system import LedgerSystem


router = APIRouter()


@router.get("/klines")
def klines(
    symbol: Optional[str] = None,
    interval: Optional[str] = None,
    limit: Optional[int] = None,
    system: LedgerSystem = Depends(get_ledger_system)
):
    try:
        return system.market_data.get_klines(symbol, interval, limit)
    except LedgerError as e:
        raise http_error(e)


@router.get("/markets")
def markets(
    symbols: Optional[str] = None,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """24h ticker summary; ``symbols`` is a JSON array string"""
    try:
        symbol_list = None
        if symbols:
            try:
                symbol_list = json.loads(symbols)
            except ValueError:
                raise ValidationError(f"symbols must be a JSON array: {symbols!r}")
            if not isinstance(symbol_list, list):
                raise ValidationError(f"symbols must be a JSON array: {symbols!r}")
        return system.market_data.get_markets(symbol_list)
    except LedgerError as e:
        raise http_error(e)
