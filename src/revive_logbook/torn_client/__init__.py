"""
Torn API v2 client.

Provides:
- Outgoing revive pages for the player or their faction
- A ``to=`` timestamp cursor for paging backwards
- Log entries involving one player, for checking payments
- Retry/backoff for transient network failures

Authenticates with a Torn API key.
"""

from .client import (
    TornAPIError,
    TornAuthError,
    TornClient,
    TornConnectionError,
    TornError,
)

__all__ = [
    "TornAPIError",
    "TornAuthError",
    "TornClient",
    "TornConnectionError",
    "TornError",
]
