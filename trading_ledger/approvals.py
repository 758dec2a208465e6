"""
Approval Workflow Module

Moves deposit, withdrawal and verification requests out of ``pending``.
The status write is a compare-and-set on the stored status, and any balance
effect of the transition runs inside the same atomic block, so a deposit is
credited exactly once no matter how often it is approved.
"""

from decimal import Decimal
from typing import Union
from enum import Enum

from .storage import StorageInterface
from .accounts import AccountStore
from .lifecycle import APPROVED, PENDING, REJECTED, normalize_status, resolve_transition
from .errors import NotFound, ValidationError
from .logging_config import get_logger, log_action


class RecordType(Enum):
    """Request collections the controller can transition"""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    VERIFICATION = "verification"

    @property
    def table(self) -> str:
        return {
            RecordType.DEPOSIT: "deposits",
            RecordType.WITHDRAWAL: "withdrawals",
            RecordType.VERIFICATION: "verifications",
        }[self]


class WithdrawalPolicy(Enum):
    """Balance effect of an approved withdrawal"""
    STATUS_ONLY = "status_only"
    DEBIT_ON_APPROVAL = "debit_on_approval"


class ApprovalController:
    """
    Applies operator decisions to request records
    """

    def __init__(self, storage: StorageInterface, accounts: AccountStore,
                 withdrawal_policy: Union[str, WithdrawalPolicy] = WithdrawalPolicy.STATUS_ONLY,
                 strict: bool = False):
        self.storage = storage
        self.accounts = accounts
        self.withdrawal_policy = WithdrawalPolicy(withdrawal_policy)
        self.strict = strict
        self.logger = get_logger("trading_ledger.approvals")

    def set_status(self, record_type: Union[str, RecordType], record_id: int, new_status: str) -> bool:
        """
        Transition a request record to ``new_status``

        Args:
            record_type: deposit, withdrawal or verification
            record_id: Request id
            new_status: approved/rejected are terminal; any other text is
                written as-is

        Returns:
            True if a transition was applied, False for a repeat of the
            current status or (in lenient mode) an unknown id

        Raises:
            InvalidStatusTransition: Leaving a terminal status or re-entering pending
            NotFound: Unknown id in strict mode, or the credited account is missing
        """
        record_type = self._parse_record_type(record_type)
        new_status = normalize_status(new_status)
        table = record_type.table
        key = str(record_id)

        with self.storage.atomic():
            data = self.storage.load(table, key)
            if data is None:
                if self.strict:
                    raise NotFound(f"{record_type.value} {record_id} not found", id=record_id)
                log_action(
                    self.logger, "warning", f"Status update for unknown {record_type.value} {record_id}",
                    action="set_status", resource=f"{record_type.value}:{record_id}",
                    extra={"status": new_status}
                )
                return False

            current = data.get('status') or PENDING
            if not resolve_transition(current, new_status):
                log_action(
                    self.logger, "info", f"{record_type.value} {record_id} already {current}",
                    user_id=data.get('username'), action="set_status",
                    resource=f"{record_type.value}:{record_id}"
                )
                return False

            # Credit only if the status is still the one the transition was checked against
            applied = self.storage.compare_and_set(table, key, 'status', data.get('status'), new_status)
            delta = self._balance_effect(record_type, new_status, data) if applied else None
            if delta is not None:
                self.accounts.adjust_balance(data['username'], delta)

        if not applied:
            return False

        log_action(
            self.logger, "info", f"{record_type.value} {record_id}: {current} -> {new_status}",
            user_id=data.get('username'), action="set_status",
            resource=f"{record_type.value}:{record_id}",
            extra={"from": current, "to": new_status, "balance_delta": str(delta) if delta is not None else None}
        )
        return True

    def approve(self, record_type: Union[str, RecordType], record_id: int) -> bool:
        return self.set_status(record_type, record_id, APPROVED)

    def reject(self, record_type: Union[str, RecordType], record_id: int) -> bool:
        return self.set_status(record_type, record_id, REJECTED)

    def _balance_effect(self, record_type: RecordType, new_status: str, data: dict):
        """Balance delta caused by this transition, or None"""
        if new_status != APPROVED:
            return None
        if record_type == RecordType.DEPOSIT:
            return Decimal(data['amount'])
        if (record_type == RecordType.WITHDRAWAL
                and self.withdrawal_policy == WithdrawalPolicy.DEBIT_ON_APPROVAL):
            return -Decimal(data['amount'])
        return None

    @staticmethod
    def _parse_record_type(record_type: Union[str, RecordType]) -> RecordType:
        if isinstance(record_type, RecordType):
            return record_type
        try:
            return RecordType(str(record_type).strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown record type: {record_type!r}", record_type=str(record_type))
