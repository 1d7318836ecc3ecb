"""Services for syncing, browsing and billing revives."""

from revive_logbook.services.billing import (
    BillingSummary,
    custom_range,
    preset_range,
    summarize_billing,
)
from revive_logbook.services.revive_service import ReviveService
from revive_logbook.services.sync_cursor import SyncCursor
from revive_logbook.services.timeline import TimelineEvent, build_timeline

__all__ = [
    "BillingSummary",
    "ReviveService",
    "SyncCursor",
    "TimelineEvent",
    "build_timeline",
    "custom_range",
    "preset_range",
    "summarize_billing",
]
