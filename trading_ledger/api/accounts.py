"""
Account endpoints: registration, login and the current user

Login performs no password check; the cookie it sets is the only identity
the rest of the API sees.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from .dependencies import current_username, get_ledger_system, http_error
from .schemas import LoginRequest, RegisterRequest
from ..errors import LedgerError, MissingFields
from ..system import LedgerSystem


router = APIRouter()


@router.post("/register")
def register(
    request: RegisterRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Create an account with a zero balance"""
    try:
        if not request.username or not request.password:
            raise MissingFields([f for f in ("username", "password") if not getattr(request, f)])
        system.accounts.create_account(request.username)
    except LedgerError as e:
        raise http_error(e)

    return {"success": True}


@router.post("/login")
def login(
    request: LoginRequest,
    response: Response,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Start a session for an existing username"""
    account = system.accounts.find_account(request.username)
    if not account:
        raise HTTPException(status_code=401, detail={"error": "invalid_login", "detail": "Invalid login"})

    response.set_cookie("user", account.username, httponly=True, samesite="lax")
    return {"success": True}


@router.get("/me")
def me(
    http_request: Request,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Current account, or null when no user is attached to the request"""
    account = system.accounts.find_account(current_username(http_request))
    if not account:
        return None

    return {"id": account.id, "username": account.username, "balance": float(account.balance)}


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie("user")
    return {"success": True}
