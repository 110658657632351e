"""
Inventory Kernel

An append-only stock ledger with:
- Per-product serialized mutations
- A movement log that replays to the current balances
- Threshold classification of stock health
- Cooldown-aware alert dispatch
- Point-in-time inventory reporting
"""

__version__ = "0.1.0"
