"""
Shared API dependencies: the ledger system, caller identity and error mapping
"""

import threading
from typing import Optional
from fastapi import HTTPException, Request

from ..system import LedgerSystem
from ..parsing import normalize_username
from ..errors import (
    LedgerError, ValidationError, NotFound, DuplicateAccount,
    InvalidStatusTransition, MarketDataUnavailable
)


# Global ledger system instance, created once on first use
ledger_system: Optional[LedgerSystem] = None
_ledger_system_lock = threading.Lock()

STATUS_BY_ERROR = [
    (ValidationError, 400),
    (NotFound, 404),
    (DuplicateAccount, 409),
    (InvalidStatusTransition, 409),
    (MarketDataUnavailable, 502),
]


def get_ledger_system() -> LedgerSystem:
    global ledger_system
    if ledger_system is None:
        with _ledger_system_lock:
            if ledger_system is None:
                ledger_system = LedgerSystem()
    return ledger_system


def current_username(request: Request) -> Optional[str]:
    """
    Username supplied by the surrounding system

    Read from the ``user`` cookie or the ``x-user`` header. No credential is
    checked here.
    """
    username = normalize_username(request.cookies.get("user") or request.headers.get("x-user"))
    return username or None


def require_username(request: Request) -> str:
    username = current_username(request)
    if not username:
        raise HTTPException(status_code=401, detail={"error": "unauthorized", "detail": "Unauthorized"})
    return username


def http_error(error: LedgerError) -> HTTPException:
    """Map a ledger error to an HTTPException carrying its kind"""
    status_code = 400
    for error_type, code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            status_code = code
            break
    return HTTPException(status_code=status_code, detail=error.to_dict())
