"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class LedgerConfig(BaseSettings):
    """Trading ledger configuration"""

    # Database configuration
    use_sqlite: bool = True
    database_path: str = "ledger.db"

    # Trade engine configuration
    default_favored_side: str = "short"  # long or short

    # Approval workflow configuration
    withdrawal_policy: str = "status_only"  # status_only or debit_on_approval
    strict_status_updates: bool = False  # Raise NotFound for unknown request ids

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 3001

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Market data relay configuration
    market_data_url: str = "https://api.binance.com"
    market_data_timeout: float = 10.0
    default_symbols: List[str] = [
        "BTCUSDT", "ETHUSDT", "BNBUSDT", "XRPUSDT", "ADAUSDT",
        "SOLUSDT", "DOGEUSDT", "TRXUSDT", "LTCUSDT", "DOTUSDT",
    ]

    class Config:
        env_prefix = "LEDGER_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config
