"""
CLI runner module.

Provides commands:
- login / logout / mode: credentials and active mode
- refresh / backfill: sync revives from Torn
- list / stats: browse the cache
- pay / exclude / include: payment ledger and exclusions
- bill / receipt-settings: billing a target
- logs: revives on a target next to their payments
- clear: wipe all local data
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
