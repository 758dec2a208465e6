"""
Admin endpoints (users, balances, favored side, summary, verification review)

None of these routes are access controlled.
"""

from fastapi import APIRouter, Depends

from .dependencies import get_ledger_system, http_error
from .schemas import (
    BalanceAdjustmentRequest, CreateUserRequest, StatusUpdateRequest,
    WinSideRequest, to_json
)
from ..approvals import RecordType
from ..errors import LedgerError, ValidationError
from ..parsing import parse_decimal
from ..system import LedgerSystem


router = APIRouter()


@router.get("/users")
def list_users(system: LedgerSystem = Depends(get_ledger_system)):
    return [to_json(account) for account in system.accounts.list_accounts()]


@router.post("/users")
def create_user(
    request: CreateUserRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Create an account, optionally with an opening balance"""
    try:
        opening_balance = parse_decimal(request.balance)
        if opening_balance is None:
            raise ValidationError(f"Invalid balance: {request.balance!r}")
        system.accounts.create_account(request.username, opening_balance=opening_balance)
    except LedgerError as e:
        raise http_error(e)

    return {"status": "created"}


@router.post("/users/balance")
def adjust_balance(
    request: BalanceAdjustmentRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Add ``balance`` to the account; a negative value debits"""
    try:
        delta = parse_decimal(request.balance)
        if delta is None:
            raise ValidationError(f"Invalid balance: {request.balance!r}")
        new_balance = system.accounts.adjust_balance(request.username, delta)
    except LedgerError as e:
        raise http_error(e)

    return {"status": "updated", "balance": float(new_balance)}


@router.get("/winside")
def get_win_side(system: LedgerSystem = Depends(get_ledger_system)):
    return {"winSide": system.admin_config.get_favored_side().value}


@router.post("/winside")
def set_win_side(
    request: WinSideRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Set the side that wins subsequent trades"""
    try:
        side = system.admin_config.set_favored_side(request.side)
    except LedgerError as e:
        raise http_error(e)

    return {"winSide": side.value}


@router.get("/summary")
def summary(system: LedgerSystem = Depends(get_ledger_system)):
    return system.reporting.platform_summary()


@router.get("/verifications")
def list_verifications(system: LedgerSystem = Depends(get_ledger_system)):
    return [to_json(v) for v in system.verification_desk.list_requests()]


@router.post("/verification/{verification_id}/status")
def update_verification_status(
    verification_id: int,
    request: StatusUpdateRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    try:
        system.approvals.set_status(RecordType.VERIFICATION, verification_id, request.status)
    except LedgerError as e:
        raise http_error(e)

    return {"success": True}
