"""
Identity verification endpoints
"""

from fastapi import APIRouter, Depends, Request

from .dependencies import current_username, get_ledger_system, http_error, require_username
from .schemas import AdvancedVerificationRequest, PrimaryVerificationRequest
from ..errors import LedgerError
from ..system import LedgerSystem


router = APIRouter()


@router.post("/primary")
def submit_primary(
    request: PrimaryVerificationRequest,
    username: str = Depends(require_username),
    system: LedgerSystem = Depends(get_ledger_system)
):
    try:
        verification = system.verification_desk.submit_primary(
            username=username,
            first_name=request.first_name,
            last_name=request.last_name,
            document_type=request.document_type,
            document_number=request.document_number
        )
    except LedgerError as e:
        raise http_error(e)

    return verification.submission_receipt()


@router.post("/advanced")
def submit_advanced(
    request: AdvancedVerificationRequest,
    username: str = Depends(require_username),
    system: LedgerSystem = Depends(get_ledger_system)
):
    try:
        verification = system.verification_desk.submit_advanced(
            username=username,
            document_type=request.document_type,
            document_number=request.document_number,
            front_image=request.front,
            back_image=request.back,
            selfie_image=request.selfie
        )
    except LedgerError as e:
        raise http_error(e)

    return verification.submission_receipt()


@router.get("/status")
def verification_status(
    http_request: Request,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Status of the latest primary and advanced request for the caller"""
    return system.verification_desk.get_status(current_username(http_request))
