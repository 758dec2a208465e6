"""
Funding Requests Module

Deposit and withdrawal requests submitted by users. Both are append-only
records created in ``pending`` state; their status is changed only by the
approval controller.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .storage import StorageInterface
from .lifecycle import PENDING, RequestRecord, record_base_from_dict
from .errors import MissingFields
from .parsing import normalize_username, parse_positive_amount
from .logging_config import get_logger, log_action


@dataclass
class WithdrawalRequest(RequestRecord):
    currency: str
    network: str
    amount: Decimal


@dataclass
class DepositRequest(WithdrawalRequest):
    proof_image: Optional[str] = None


class FundingDesk:
    """
    Accepts and lists deposit and withdrawal requests
    """

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.deposits_table = "deposits"
        self.withdrawals_table = "withdrawals"
        self.logger = get_logger("trading_ledger.funding")

    def submit_deposit(self, username: str, currency: str, network: str, amount: Any,
                       proof_image: Optional[str] = None) -> DepositRequest:
        """
        Record a pending deposit

        Args:
            username: Depositing user
            currency: Asset code, e.g. USDT
            network: Transfer network, e.g. TRC20
            amount: Claimed amount; must be positive
            proof_image: Optional reference to a proof-of-payment upload
        """
        username = normalize_username(username)
        amount = self._validate(username, currency, network, amount)
        now = datetime.now(timezone.utc)
        with self.storage.atomic():
            deposit = DepositRequest(
                id=self.storage.next_id(self.deposits_table),
                created_at=now,
                updated_at=now,
                username=username,
                status=PENDING,
                currency=currency,
                network=network,
                amount=amount,
                proof_image=proof_image or None,
            )
            self.storage.save(self.deposits_table, str(deposit.id), deposit.to_dict())

        log_action(
            self.logger, "info", "Deposit submitted",
            user_id=username, action="submit_deposit", resource=f"deposit:{deposit.id}",
            extra={"currency": currency, "network": network, "amount": str(amount)}
        )
        return deposit

    def submit_withdrawal(self, username: str, currency: str, network: str,
                          amount: Any) -> WithdrawalRequest:
        """Record a pending withdrawal"""
        username = normalize_username(username)
        amount = self._validate(username, currency, network, amount)
        now = datetime.now(timezone.utc)
        with self.storage.atomic():
            withdrawal = WithdrawalRequest(
                id=self.storage.next_id(self.withdrawals_table),
                created_at=now,
                updated_at=now,
                username=username,
                status=PENDING,
                currency=currency,
                network=network,
                amount=amount,
            )
            self.storage.save(self.withdrawals_table, str(withdrawal.id), withdrawal.to_dict())

        log_action(
            self.logger, "info", "Withdrawal submitted",
            user_id=username, action="submit_withdrawal", resource=f"withdrawal:{withdrawal.id}",
            extra={"currency": currency, "network": network, "amount": str(amount)}
        )
        return withdrawal

    def get_deposit(self, deposit_id: int) -> Optional[DepositRequest]:
        data = self.storage.load(self.deposits_table, str(deposit_id))
        return self._deposit_from_dict(data) if data else None

    def get_withdrawal(self, withdrawal_id: int) -> Optional[WithdrawalRequest]:
        data = self.storage.load(self.withdrawals_table, str(withdrawal_id))
        return self._withdrawal_from_dict(data) if data else None

    def list_deposits(self, username: Optional[str] = None) -> List[DepositRequest]:
        """Deposits newest first"""
        rows = self._rows(self.deposits_table, username)
        return sorted((self._deposit_from_dict(d) for d in rows), key=lambda r: r.id, reverse=True)

    def list_withdrawals(self, username: Optional[str] = None) -> List[WithdrawalRequest]:
        """Withdrawals newest first"""
        rows = self._rows(self.withdrawals_table, username)
        return sorted((self._withdrawal_from_dict(d) for d in rows), key=lambda r: r.id, reverse=True)

    def _rows(self, table: str, username: Optional[str]) -> List[Dict]:
        username = normalize_username(username)
        if username:
            return self.storage.find(table, {"username": username})
        return self.storage.load_all(table)

    def _validate(self, username: str, currency: str, network: str, amount: Any) -> Decimal:
        missing = [name for name, value in (
            ("username", username), ("currency", currency), ("network", network)
        ) if not value]
        if amount is None or amount == "":
            missing.append("amount")
        if missing:
            raise MissingFields(missing)
        return parse_positive_amount(amount)

    def _withdrawal_from_dict(self, data: Dict) -> WithdrawalRequest:
        return WithdrawalRequest(
            currency=data['currency'],
            network=data['network'],
            amount=Decimal(data['amount']),
            **record_base_from_dict(data)
        )

    def _deposit_from_dict(self, data: Dict) -> DepositRequest:
        return DepositRequest(
            currency=data['currency'],
            network=data['network'],
            amount=Decimal(data['amount']),
            proof_image=data.get('proof_image'),
            **record_base_from_dict(data)
        )
