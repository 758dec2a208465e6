"""
Admin Configuration Module

Holds the process-wide favored trade side read by the settlement engine.
The value lives in the storage backend and is read and written under the
storage lock, so a reader always sees one complete value.
"""

from enum import Enum
from typing import Union

from .storage import StorageInterface
from .errors import ValidationError
from .logging_config import get_logger, log_action


class TradeSide(Enum):
    """Trade directions"""
    LONG = "long"
    SHORT = "short"

    @classmethod
    def parse(cls, value: Union[str, 'TradeSide', None]) -> 'TradeSide':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            raise ValidationError(f"Invalid side: {value!r} (expected 'long' or 'short')", side=str(value))


class AdminConfiguration:
    """Get/set store for the favored side"""

    SETTINGS_TABLE = "admin_settings"
    FAVORED_SIDE_KEY = "favored_side"

    def __init__(self, storage: StorageInterface, default_side: Union[str, TradeSide] = TradeSide.SHORT):
        self.storage = storage
        self.default_side = TradeSide.parse(default_side)
        self.logger = get_logger("trading_ledger.admin")

    def get_favored_side(self) -> TradeSide:
        """Snapshot of the current favored side"""
        # Single read under the backend lock
        data = self.storage.load(self.SETTINGS_TABLE, self.FAVORED_SIDE_KEY)
        if not data:
            return self.default_side
        return TradeSide(data['value'])

    def set_favored_side(self, side: Union[str, TradeSide]) -> TradeSide:
        """Replace the favored side and return the stored value"""
        new_side = TradeSide.parse(side)
        with self.storage.atomic():
            previous = self.get_favored_side()
            self.storage.save(self.SETTINGS_TABLE, self.FAVORED_SIDE_KEY, {
                'id': self.FAVORED_SIDE_KEY,
                'value': new_side.value,
            })

        log_action(
            self.logger, "info", f"Favored side set to {new_side.value}",
            action="set_favored_side", resource="admin_settings:favored_side",
            extra={"previous": previous.value, "current": new_side.value}
        )

        return new_side
