"""
Deposit and withdrawal endpoints
"""

from fastapi import APIRouter, Depends

from .dependencies import get_ledger_system, http_error, require_username
from .schemas import DepositSubmission, StatusUpdateRequest, WithdrawalSubmission, to_json
from ..approvals import RecordType
from ..errors import LedgerError
from ..system import LedgerSystem


router = APIRouter()


@router.post("/deposit")
def submit_deposit(
    request: DepositSubmission,
    username: str = Depends(require_username),
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Submit a pending deposit"""
    try:
        deposit = system.funding_desk.submit_deposit(
            username=username,
            currency=request.currency,
            network=request.network,
            amount=request.amount,
            proof_image=request.proof_image
        )
    except LedgerError as e:
        raise http_error(e)

    return deposit.submission_receipt()


@router.post("/withdraw")
def submit_withdrawal(
    request: WithdrawalSubmission,
    username: str = Depends(require_username),
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Submit a pending withdrawal"""
    try:
        withdrawal = system.funding_desk.submit_withdrawal(
            username=username,
            currency=request.currency,
            network=request.network,
            amount=request.amount
        )
    except LedgerError as e:
        raise http_error(e)

    return withdrawal.submission_receipt()


@router.get("/deposits")
def list_deposits(system: LedgerSystem = Depends(get_ledger_system)):
    return [to_json(d) for d in system.funding_desk.list_deposits()]


@router.get("/withdrawals")
def list_withdrawals(system: LedgerSystem = Depends(get_ledger_system)):
    return [to_json(w) for w in system.funding_desk.list_withdrawals()]


@router.post("/deposit/{deposit_id}/status")
def update_deposit_status(
    deposit_id: int,
    request: StatusUpdateRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Approve or reject a deposit; approval credits the balance once"""
    try:
        system.approvals.set_status(RecordType.DEPOSIT, deposit_id, request.status)
    except LedgerError as e:
        raise http_error(e)

    return {"success": True}


@router.post("/withdraw/{withdrawal_id}/status")
def update_withdrawal_status(
    withdrawal_id: int,
    request: StatusUpdateRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Approve or reject a withdrawal"""
    try:
        system.approvals.set_status(RecordType.WITHDRAWAL, withdrawal_id, request.status)
    except LedgerError as e:
        raise http_error(e)

    return {"success": True}
