"""
Ledger system wiring.

Builds every component around one explicit storage handle. Tests pass an
``InMemoryStorage``; the API builds the SQLite-backed system from settings.
"""

from typing import Optional

from .storage import InMemoryStorage, SQLiteStorage, StorageInterface
from .accounts import AccountStore
from .admin_config import AdminConfiguration
from .trading import SettlementEngine
from .funding import FundingDesk
from .verification import VerificationDesk
from .approvals import ApprovalController
from .reporting import ReportingService
from .market_data import MarketDataClient
from .config import LedgerConfig, get_config


class LedgerSystem:
    """Trading ledger with all components initialized"""

    def __init__(self, storage: Optional[StorageInterface] = None,
                 config: Optional[LedgerConfig] = None,
                 market_data: Optional[MarketDataClient] = None):
        self.config = config or get_config()

        # Initialize storage
        if storage is None:
            if self.config.use_sqlite:
                storage = SQLiteStorage(self.config.database_path)
            else:
                storage = InMemoryStorage()
        self.storage = storage

        # Initialize core components
        self.accounts = AccountStore(self.storage)
        self.admin_config = AdminConfiguration(self.storage, self.config.default_favored_side)
        self.settlement_engine = SettlementEngine(self.storage, self.accounts, self.admin_config)
        self.funding_desk = FundingDesk(self.storage)
        self.verification_desk = VerificationDesk(self.storage)
        self.approvals = ApprovalController(
            self.storage, self.accounts,
            withdrawal_policy=self.config.withdrawal_policy,
            strict=self.config.strict_status_updates
        )
        self.reporting = ReportingService(self.storage)
        self.market_data = market_data or MarketDataClient(
            base_url=self.config.market_data_url,
            timeout=self.config.market_data_timeout,
            default_symbols=self.config.default_symbols
        )

    def close(self) -> None:
        self.market_data.close()
        self.storage.close()
