"""
Trade Settlement Module

Settles simulated trades against the admin-controlled favored side. A trade
wins when its side equals the favored side snapshot taken at settlement time;
a win pays ``amount * percent / 100`` and a loss costs the full amount. The
trade record and its balance effect are written in one atomic block.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from enum import Enum

from .storage import StorageInterface, StorageRecord
from .accounts import AccountStore
from .admin_config import AdminConfiguration, TradeSide
from .errors import MissingFields
from .parsing import normalize_username, parse_decimal, parse_positive_amount
from .logging_config import get_logger, log_action


class TradeResult(Enum):
    WIN = "win"
    LOSE = "lose"


@dataclass
class TradeRecord(StorageRecord):
    """Immutable record of a settled trade"""
    username: str
    symbol: str
    side: TradeSide
    amount: Decimal
    profit: Decimal
    result: TradeResult


@dataclass(frozen=True)
class Settlement:
    """Outcome returned to the caller of settle_trade"""
    result: TradeResult
    profit: Decimal
    trade: TradeRecord

    def to_dict(self) -> Dict[str, Any]:
        return {"result": self.result.value, "profit": float(self.profit)}


def compute_outcome(side: TradeSide, favored_side: TradeSide, amount: Decimal,
                    percent: Decimal) -> Tuple[TradeResult, Decimal]:
    """Win/lose decision and profit for one trade"""
    if side == favored_side:
        return TradeResult.WIN, amount * percent / Decimal(100)
    return TradeResult.LOSE, -amount


class SettlementEngine:
    """
    Computes trade outcomes and applies them to account balances
    """

    def __init__(self, storage: StorageInterface, accounts: AccountStore,
                 admin_config: AdminConfiguration):
        self.storage = storage
        self.accounts = accounts
        self.admin_config = admin_config
        self.trades_table = "trades"
        self.logger = get_logger("trading_ledger.trades")

    def settle_trade(self, username: str, symbol: Optional[str], side: Any,
                     amount: Any, percent: Any = None) -> Settlement:
        """
        Settle a trade for a user

        Args:
            username: Verified username supplied by the caller
            symbol: Opaque market symbol, stored as metadata only
            side: "long" or "short"
            amount: Stake; must parse to a positive number
            percent: Payout percentage on a win; 0 when absent or unparseable

        Returns:
            Settlement with result, profit and the stored trade record

        Raises:
            InvalidAmount: If amount does not parse to a positive number
            ValidationError: If side is not long/short or username is missing
            NotFound: If the account does not exist (nothing is written)
        """
        username = normalize_username(username)
        if not username:
            raise MissingFields(["username"])
        amount = parse_positive_amount(amount)
        percent = parse_decimal(percent)
        if percent is None:
            percent = Decimal('0')
        side = TradeSide.parse(side)

        favored_side = self.admin_config.get_favored_side()
        result, profit = compute_outcome(side, favored_side, amount, percent)

        try:
            with self.storage.atomic():
                now = datetime.now(timezone.utc)
                trade = TradeRecord(
                    id=self.storage.next_id(self.trades_table),
                    created_at=now,
                    updated_at=now,
                    username=username,
                    symbol=symbol or "",
                    side=side,
                    amount=amount,
                    profit=profit,
                    result=result,
                )
                self.storage.save(self.trades_table, str(trade.id), self._trade_to_dict(trade))
                self.accounts.adjust_balance(username, profit)
        except Exception as e:
            log_action(
                self.logger, "error", f"Trade failed: {e}",
                user_id=username, action="settle_trade",
                extra={"symbol": symbol, "side": side.value, "amount": str(amount)}
            )
            raise

        log_action(
            self.logger, "info", f"Trade settled: {result.value}",
            user_id=username, action="settle_trade", resource=f"trade:{trade.id}",
            extra={
                "symbol": trade.symbol,
                "side": side.value,
                "favored_side": favored_side.value,
                "amount": str(amount),
                "percent": str(percent),
                "profit": str(profit),
            }
        )

        return Settlement(result=result, profit=profit, trade=trade)

    def get_trade(self, trade_id: int) -> Optional[TradeRecord]:
        data = self.storage.load(self.trades_table, str(trade_id))
        if data:
            return self._trade_from_dict(data)
        return None

    def list_trades(self, username: Optional[str] = None) -> List[TradeRecord]:
        """Trades newest first, optionally for one user"""
        if username:
            rows = self.storage.find(self.trades_table, {"username": username})
        else:
            rows = self.storage.load_all(self.trades_table)
        trades = [self._trade_from_dict(data) for data in rows]
        return sorted(trades, key=lambda t: t.id, reverse=True)

    def _trade_to_dict(self, trade: TradeRecord) -> Dict:
        result = trade.to_dict()
        result['side'] = trade.side.value
        result['result'] = trade.result.value
        return result

    def _trade_from_dict(self, data: Dict) -> TradeRecord:
        return TradeRecord(
            id=int(data['id']),
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            username=data['username'],
            symbol=data.get('symbol') or "",
            side=TradeSide(data['side']),
            amount=Decimal(data['amount']),
            profit=Decimal(data['profit']),
            result=TradeResult(data['result']),
        )
