"""
Account Management Module

Holds each user's identity and running balance. The balance is a single
signed Decimal per account; it is changed only through ``adjust_balance``,
which performs an atomic read-modify-write in the storage backend.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional

from .storage import StorageInterface, StorageRecord
from .errors import DuplicateAccount, MissingFields, NotFound
from .parsing import normalize_username
from .logging_config import get_logger, log_action


@dataclass
class Account(StorageRecord):
    """User account with a running balance (may go negative)"""
    username: str
    balance: Decimal = Decimal('0')


class AccountStore:
    """
    Manages account creation, lookup and balance adjustments
    """

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.accounts_table = "accounts"
        self.logger = get_logger("trading_ledger.accounts")

    def create_account(self, username: str, opening_balance: Optional[Decimal] = None) -> Account:
        """
        Create a new account with a zero balance

        Args:
            username: Unique identity key
            opening_balance: Optional admin adjustment applied in the same
                atomic block as the creation

        Returns:
            Created Account object

        Raises:
            MissingFields: If username is empty
            DuplicateAccount: If the username is already taken
        """
        username = normalize_username(username)
        if not username:
            raise MissingFields(["username"])

        with self.storage.atomic():
            if self.storage.exists(self.accounts_table, username):
                raise DuplicateAccount(f"Username already exists: {username}", username=username)

            now = datetime.now(timezone.utc)
            account = Account(
                id=self.storage.next_id(self.accounts_table),
                created_at=now,
                updated_at=now,
                username=username,
            )
            self._save_account(account)

            if opening_balance:
                account.balance = self.adjust_balance(username, opening_balance)

        log_action(
            self.logger, "info", f"Account created: {username}",
            user_id=username, action="create_account", resource=f"account:{account.id}",
            extra={"opening_balance": str(account.balance)}
        )

        return account

    def get_account(self, username: str) -> Account:
        """Get account by username, raising NotFound if absent"""
        account = self.find_account(username)
        if account is None:
            raise NotFound(f"Account {username} not found", username=username)
        return account

    def find_account(self, username: str) -> Optional[Account]:
        """Get account by username or None"""
        username = normalize_username(username)
        if not username:
            return None
        account_dict = self.storage.load(self.accounts_table, username)
        if account_dict:
            return self._account_from_dict(account_dict)
        return None

    def list_accounts(self) -> List[Account]:
        """All accounts ordered by id"""
        accounts = [self._account_from_dict(data) for data in self.storage.load_all(self.accounts_table)]
        return sorted(accounts, key=lambda a: a.id)

    def adjust_balance(self, username: str, delta: Decimal) -> Decimal:
        """
        Atomically add ``delta`` to the account balance

        Args:
            username: Account to adjust
            delta: Positive to credit, negative to debit

        Returns:
            The new balance

        Raises:
            NotFound: If the account does not exist
        """
        username = normalize_username(username)
        new_balance = self.storage.increment(self.accounts_table, username, "balance", Decimal(delta))
        if new_balance is None:
            raise NotFound(f"Account {username} not found", username=username)

        log_action(
            self.logger, "info", f"Balance adjusted for {username}",
            user_id=username, action="adjust_balance", resource=f"account:{username}",
            extra={"delta": str(delta), "balance": str(new_balance)}
        )

        return new_balance

    def _save_account(self, account: Account) -> None:
        """Save account to storage"""
        self.storage.save(self.accounts_table, account.username, account.to_dict())

    def _account_from_dict(self, data: Dict) -> Account:
        """Convert dictionary to Account"""
        return Account(
            id=int(data['id']),
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            username=data['username'],
            balance=Decimal(data.get('balance') or '0'),
        )
