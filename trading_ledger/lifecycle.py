"""
Request Record Lifecycle Module

Shared state machine for deposit, withdrawal and verification requests.
Records start ``pending`` and reach ``approved`` or ``rejected``, which are
terminal. Any other status text is a non-terminal pass-through value. No
record ever re-enters ``pending``.
"""

from datetime import datetime
from dataclasses import dataclass
from typing import Dict

from .storage import StorageRecord
from .errors import InvalidStatusTransition, MissingFields


PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"

TERMINAL_STATUSES = frozenset({APPROVED, REJECTED})


@dataclass
class RequestRecord(StorageRecord):
    """Base for user-submitted requests carrying a lifecycle status"""
    username: str
    status: str

    @property
    def is_pending(self) -> bool:
        return self.status == PENDING

    def submission_receipt(self) -> Dict:
        return {"id": self.id, "status": self.status}


def normalize_status(status: str) -> str:
    normalized = (status or "").strip().lower()
    if not normalized:
        raise MissingFields(["status"])
    return normalized


def resolve_transition(current: str, new: str) -> bool:
    """
    Decide whether moving from ``current`` to ``new`` writes anything

    Returns:
        True if the status must be written, False for an idempotent repeat

    Raises:
        InvalidStatusTransition: Leaving a terminal status, or going back
            to pending
    """
    if new == current:
        return False
    if current in TERMINAL_STATUSES:
        raise InvalidStatusTransition(
            f"Cannot change status from terminal '{current}' to '{new}'",
            current=current, requested=new
        )
    if new == PENDING:
        raise InvalidStatusTransition(
            f"Cannot return to '{PENDING}' from '{current}'",
            current=current, requested=new
        )
    return True


def record_base_from_dict(data: Dict) -> Dict:
    """Common constructor arguments for RequestRecord subclasses"""
    return {
        'id': int(data['id']),
        'created_at': datetime.fromisoformat(data['created_at']),
        'updated_at': datetime.fromisoformat(data['updated_at']),
        'username': data['username'],
        'status': data.get('status') or PENDING,
    }
