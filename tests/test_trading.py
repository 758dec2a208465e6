"""
Test suite for the trade settlement engine

Tests outcome computation against the favored side, balance effects,
all-or-nothing settlement and concurrent settlement on one account.
"""

import pytest
import tempfile
import threading
from decimal import Decimal
from pathlib import Path

from trading_ledger.storage import InMemoryStorage, SQLiteStorage
from trading_ledger.accounts import AccountStore
from trading_ledger.admin_config import AdminConfiguration, TradeSide
from trading_ledger.trading import SettlementEngine, TradeResult, compute_outcome
from trading_ledger.errors import InvalidAmount, NotFound, ValidationError


class TestComputeOutcome:
    """Test the pure win/lose computation"""

    @pytest.mark.parametrize("side,favored,amount,percent,result,profit", [
        (TradeSide.SHORT, TradeSide.SHORT, "100", "10", TradeResult.WIN, "10"),
        (TradeSide.LONG, TradeSide.SHORT, "50", "20", TradeResult.LOSE, "-50"),
        (TradeSide.LONG, TradeSide.LONG, "80", "0", TradeResult.WIN, "0"),
        (TradeSide.SHORT, TradeSide.LONG, "12.5", "85", TradeResult.LOSE, "-12.5"),
        (TradeSide.LONG, TradeSide.LONG, "33", "7.5", TradeResult.WIN, "2.475"),
    ])
    def test_outcomes(self, side, favored, amount, percent, result, profit):
        """Test win pays amount*percent/100 and loss costs the amount"""
        assert compute_outcome(side, favored, Decimal(amount), Decimal(percent)) == (
            result, Decimal(profit)
        )


class TestSettlementEngine:
    """Test settlement against an in-memory store"""

    def setup_method(self):
        """Set up test fixtures"""
        self.storage = InMemoryStorage()
        self.accounts = AccountStore(self.storage)
        self.admin_config = AdminConfiguration(self.storage)
        self.engine = SettlementEngine(self.storage, self.accounts, self.admin_config)
        self.accounts.create_account("alice")
        self.accounts.adjust_balance("alice", Decimal("1000"))

    def balance(self, username="alice"):
        return self.accounts.get_account(username).balance

    def test_winning_trade(self):
        """Test favored short, short/100/10 wins 10"""
        settlement = self.engine.settle_trade("alice", "BTCUSDT", "short", 100, 10)

        assert settlement.result == TradeResult.WIN
        assert settlement.profit == Decimal("10")
        assert settlement.to_dict() == {"result": "win", "profit": 10.0}
        assert self.balance() == Decimal("1010")

    def test_losing_trade(self):
        """Test favored short, long/50/20 loses 50"""
        settlement = self.engine.settle_trade("alice", "ETHUSDT", "long", 50, 20)

        assert settlement.result == TradeResult.LOSE
        assert settlement.profit == Decimal("-50")
        assert self.balance() == Decimal("950")

    def test_trade_record_is_stored(self):
        """Test the stored trade matches the settlement"""
        settlement = self.engine.settle_trade("alice", "BTCUSDT", "short", "100", "10")

        trade = self.engine.get_trade(settlement.trade.id)
        assert trade.username == "alice"
        assert trade.symbol == "BTCUSDT"
        assert trade.side == TradeSide.SHORT
        assert trade.amount == Decimal("100")
        assert trade.profit == Decimal("10")
        assert trade.result == TradeResult.WIN

    def test_invalid_amount_writes_nothing(self):
        """Test amount 'abc' fails with no trade and no balance change"""
        with pytest.raises(InvalidAmount) as exc_info:
            self.engine.settle_trade("alice", "BTCUSDT", "short", "abc", 10)

        assert exc_info.value.kind == "invalid_amount"
        assert self.engine.list_trades() == []
        assert self.balance() == Decimal("1000")

    @pytest.mark.parametrize("amount", [0, -5, "-1", None, "", float("nan"), float("inf")])
    def test_non_positive_or_missing_amount(self, amount):
        """Test every non-positive or unparseable amount is rejected"""
        with pytest.raises(InvalidAmount):
            self.engine.settle_trade("alice", "BTCUSDT", "short", amount, 10)
        assert self.engine.list_trades() == []

    def test_amount_numeric_prefix_is_accepted(self):
        """Test lenient parsing reads the leading number"""
        settlement = self.engine.settle_trade("alice", "BTCUSDT", "long", "20usdt", 10)
        assert settlement.trade.amount == Decimal("20")
        assert self.balance() == Decimal("980")

    @pytest.mark.parametrize("percent", [None, "", "abc"])
    def test_missing_percent_defaults_to_zero(self, percent):
        """Test a winning trade with no usable percent pays nothing"""
        settlement = self.engine.settle_trade("alice", "BTCUSDT", "short", 100, percent)

        assert settlement.result == TradeResult.WIN
        assert settlement.profit == Decimal("0")
        assert self.balance() == Decimal("1000")

    def test_invalid_side_rejected(self):
        """Test sides other than long/short are validation errors"""
        with pytest.raises(ValidationError):
            self.engine.settle_trade("alice", "BTCUSDT", "up", 100, 10)
        assert self.engine.list_trades() == []

    def test_unknown_user_rolls_back_trade(self):
        """Test a failed balance adjustment leaves no orphaned trade"""
        with pytest.raises(NotFound):
            self.engine.settle_trade("ghost", "BTCUSDT", "short", 100, 10)

        assert self.engine.list_trades() == []
        assert self.accounts.find_account("ghost") is None

        # The id sequence was rolled back too
        settlement = self.engine.settle_trade("alice", "BTCUSDT", "short", 100, 10)
        assert settlement.trade.id == 1

    def test_history_is_not_rewritten_by_config_change(self):
        """Test changing the favored side leaves past results intact"""
        first = self.engine.settle_trade("alice", "BTCUSDT", "short", 100, 10)
        self.admin_config.set_favored_side("long")
        second = self.engine.settle_trade("alice", "BTCUSDT", "short", 100, 10)

        assert self.engine.get_trade(first.trade.id).result == TradeResult.WIN
        assert second.result == TradeResult.LOSE
        assert self.balance() == Decimal("910")

    def test_list_trades_newest_first_and_by_user(self):
        """Test listing order and filtering"""
        self.accounts.create_account("bob")
        self.engine.settle_trade("alice", "BTCUSDT", "short", 10, 10)
        self.engine.settle_trade("bob", "ETHUSDT", "short", 10, 10)
        self.engine.settle_trade("alice", "SOLUSDT", "long", 10, 10)

        assert [t.symbol for t in self.engine.list_trades()] == ["SOLUSDT", "ETHUSDT", "BTCUSDT"]
        assert [t.symbol for t in self.engine.list_trades("alice")] == ["SOLUSDT", "BTCUSDT"]

    def test_balance_equals_sum_of_profits(self):
        """Test the balance is exactly the sum of realized profits"""
        trades = [("short", 100, 10), ("long", 30, 50), ("short", 7, 33), ("long", 1, 1)]
        profits = [self.engine.settle_trade("alice", "X", *t).profit for t in trades]

        assert self.balance() == Decimal("1000") + sum(profits)


@pytest.mark.parametrize("backend", ["memory", "sqlite"])
def test_concurrent_settlements_do_not_lose_updates(backend, tmp_path):
    """Concurrent trades on one account add up regardless of interleaving"""
    if backend == "memory":
        storage = InMemoryStorage()
    else:
        storage = SQLiteStorage(tmp_path / "ledger.db")

    accounts = AccountStore(storage)
    admin_config = AdminConfiguration(storage)
    engine = SettlementEngine(storage, accounts, admin_config)
    accounts.create_account("alice")

    profits = []
    profits_lock = threading.Lock()

    def worker(side, amount):
        for _ in range(10):
            settlement = engine.settle_trade("alice", "BTCUSDT", side, amount, 10)
            with profits_lock:
                profits.append(settlement.profit)

    threads = [
        threading.Thread(target=worker, args=("short" if i % 2 else "long", 10 + i))
        for i in range(8)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(profits) == 80
    assert len(engine.list_trades()) == 80
    assert accounts.get_account("alice").balance == sum(profits)
    storage.close()


def test_sqlite_settlement_rolls_back_on_unknown_user():
    """The SQLite backend leaves no trade behind for a failed settlement"""
    with tempfile.TemporaryDirectory() as temp_dir:
        storage = SQLiteStorage(Path(temp_dir) / "ledger.db")
        accounts = AccountStore(storage)
        engine = SettlementEngine(storage, accounts, AdminConfiguration(storage))

        with pytest.raises(NotFound):
            engine.settle_trade("ghost", "BTCUSDT", "short", 100, 10)

        assert storage.count("trades") == 0
        storage.close()


def test_settlement_opens_one_transaction():
    """Settlement and its favored side read share a single transaction"""
    begun = []

    class CountingStorage(InMemoryStorage):
        def begin_transaction(self):
            begun.append(1)
            super().begin_transaction()

    storage = CountingStorage()
    accounts = AccountStore(storage)
    engine = SettlementEngine(storage, accounts, AdminConfiguration(storage))
    accounts.create_account("alice")
    begun.clear()

    engine.settle_trade(" alice ", "BTCUSDT", "short", 100, 10)

    assert len(begun) == 1
    assert engine.list_trades("alice")[0].username == "alice"


@pytest.mark.parametrize("backend", ["memory", "sqlite"])
def test_favored_side_flips_during_concurrent_settlements(backend, tmp_path):
    """Every trade's result and profit agree even while the favored side flips"""
    if backend == "memory":
        storage = InMemoryStorage()
    else:
        storage = SQLiteStorage(tmp_path / "ledger.db")

    accounts = AccountStore(storage)
    admin_config = AdminConfiguration(storage)
    engine = SettlementEngine(storage, accounts, admin_config)
    accounts.create_account("alice")
    stop = threading.Event()

    def flipper():
        while not stop.is_set():
            admin_config.set_favored_side("long")
            admin_config.set_favored_side("short")

    def trader(offset):
        for i in range(25):
            side = "long" if (i + offset) % 2 else "short"
            engine.settle_trade("alice", "BTCUSDT", side, 10 + offset, 10)

    flipping = threading.Thread(target=flipper)
    traders = [threading.Thread(target=trader, args=(offset,)) for offset in range(4)]
    flipping.start()
    for thread in traders:
        thread.start()
    for thread in traders:
        thread.join()
    stop.set()
    flipping.join()

    trades = engine.list_trades()
    assert len(trades) == 100
    for trade in trades:
        if trade.result == TradeResult.WIN:
            assert trade.profit == trade.amount * Decimal(10) / Decimal(100)
        else:
            assert trade.profit == -trade.amount
    assert accounts.get_account("alice").balance == sum(t.profit for t in trades)
    storage.close()
