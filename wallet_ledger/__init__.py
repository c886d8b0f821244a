"""
Wallet Ledger

Per-account wallet balances with an append-only transaction log.
Top-ups and charges are applied atomically under a per-account lock,
using Decimal arithmetic throughout.
"""

__version__ = "1.0.0"
