"""
Trading Ledger

Per-user balance ledger with an admin-controlled trade settlement engine and
approval workflows for deposits, withdrawals and identity verification.
"""

__version__ = "1.0.0"
