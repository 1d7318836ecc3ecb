"""
Torn revive logbook.

Caches a player's (or faction's) outgoing revives from the Torn API,
derives category, likelihood and skill-gain fields, and serves filtered,
sorted and paginated views for review and billing.
"""

__version__ = "0.1.0"
