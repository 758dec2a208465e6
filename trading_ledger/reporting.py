"""
Reporting Module

Platform-level aggregates for the admin dashboard: trade counts and net
approved funding, overall and for a single UTC day.
"""

from decimal import Decimal
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, Optional

from .storage import StorageInterface
from .lifecycle import APPROVED


def _created_on(record: Dict[str, Any], day: date) -> bool:
    created_at = datetime.fromisoformat(record['created_at'])
    if created_at.tzinfo is not None:
        created_at = created_at.astimezone(timezone.utc)
    return created_at.date() == day


def _approved_total(records: Iterable[Dict[str, Any]]) -> Decimal:
    return sum((Decimal(r['amount']) for r in records if r.get('status') == APPROVED), Decimal('0'))


class ReportingService:
    """Read-only aggregates over the request and trade collections"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage

    def platform_summary(self, today: Optional[date] = None) -> Dict[str, Any]:
        """
        Order counts and net funding (approved deposits minus approved
        withdrawals), overall and for ``today`` (UTC date by default)
        """
        today = today or datetime.now(timezone.utc).date()

        trades = self.storage.load_all("trades")
        deposits = self.storage.load_all("deposits")
        withdrawals = self.storage.load_all("withdrawals")

        todays_deposits = [d for d in deposits if _created_on(d, today)]
        todays_withdrawals = [w for w in withdrawals if _created_on(w, today)]

        return {
            "platformOrders": len(trades),
            "platformRechargeUpDown": float(_approved_total(deposits) - _approved_total(withdrawals)),
            "todayOrders": sum(1 for t in trades if _created_on(t, today)),
            "todayRechargeUpDown": float(_approved_total(todays_deposits) - _approved_total(todays_withdrawals)),
        }
