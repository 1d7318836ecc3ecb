"""Incremental synchronization of Torn revive pages into the record store.

``refresh`` pulls the newest page. ``backfill`` pages backwards from the
oldest cached timestamp until Torn has nothing older. Merging is an upsert
by id, so overlapping pages never create duplicates.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from ..errors import MalformedRecord, RecordsFetchFailed
from ..schemas import InteractionRecord, Mode
from ..torn_client import TornAuthError, TornError

if TYPE_CHECKING:
    from ..state_store import RecordStore
    from ..torn_client import TornClient

logger = logging.getLogger(__name__)


class SyncCursor:
    """Per-mode paging state over the Torn revive log.

    Tracks, for each mode, whether older pages may still exist and the
    oldest timestamp known to be cached. A failed fetch leaves both as they
    were so the caller can simply retry.
    """

    def __init__(self, torn_client: TornClient, record_store: RecordStore) -> None:
        """Initialize the cursor.

        Args:
            torn_client: Client for the Torn API.
            record_store: Store the pages are merged into.
        """
        self.client = torn_client
        self.store = record_store
        self._has_more: dict[Mode, bool] = {}
        self._oldest: dict[Mode, int | None] = {}
        self.last_reference_actor_id: int | None = None
        self.last_faction_id: int | None = None

    def has_more(self, mode: Mode | str) -> bool:
        """False once a backfill found nothing older for the mode."""
        return self._has_more.get(Mode.parse(mode), True)

    def oldest_timestamp(self, mode: Mode | str) -> int | None:
        """Oldest cached timestamp for the mode."""
        mode = Mode.parse(mode)
        if mode not in self._oldest:
            self._oldest[mode] = self.store.get_oldest_timestamp(mode)
        return self._oldest[mode]

    def refresh(self, mode: Mode | str) -> int:
        """Fetch the newest page and merge it.

        Also re-arms backfill for the mode.

        Returns:
            Number of revives merged.

        Raises:
            RecordsFetchFailed: if the page could not be fetched.
        """
        mode = Mode.parse(mode)
        start_time = time.monotonic()

        page = self._fetch(mode, before=None)
        merged, new = self._merge(mode, page)

        self._has_more[mode] = True
        self._oldest[mode] = self.store.get_oldest_timestamp(mode)

        logger.info(
            "Refresh %s: %d merged, %d new in %dms",
            mode.value,
            merged,
            new,
            int((time.monotonic() - start_time) * 1000),
        )
        return merged

    def backfill(self, mode: Mode | str) -> int:
        """Fetch the page at or before the oldest cached revive and merge it.

        Torn's ``to`` bound is inclusive, so that page can consist only of
        revives already cached at the floor second. When it adds nothing
        new, one more page is requested strictly before the floor. Only an
        empty page marks the mode as exhausted; calls after that return 0
        without fetching until the next refresh.

        Returns:
            Number of revives merged from the page that was kept.

        Raises:
            RecordsFetchFailed: if a page could not be fetched.
        """
        mode = Mode.parse(mode)
        if not self.has_more(mode):
            logger.debug("Backfill %s skipped: no older revives", mode.value)
            return 0

        start_time = time.monotonic()
        floor = self.store.get_oldest_timestamp(mode)
        page = self._fetch(mode, before=floor)
        merged, new = self._merge(mode, page) if page else (0, 0)

        if page and new == 0 and floor is not None:
            logger.debug("Backfill %s: page at %s held nothing new, stepping past it", mode.value, floor)
            page = self._fetch(mode, before=floor - 1)
            merged, new = self._merge(mode, page) if page else (0, 0)

        if not page:
            self._has_more[mode] = False
            logger.info("Backfill %s: no older revives before %s", mode.value, floor)
            return 0

        self._oldest[mode] = self.store.get_oldest_timestamp(mode)

        logger.info(
            "Backfill %s: %d merged, %d new, oldest %s -> %s in %dms",
            mode.value,
            merged,
            new,
            floor,
            self._oldest[mode],
            int((time.monotonic() - start_time) * 1000),
        )
        return merged

    def reset(self, mode: Mode | str | None = None) -> None:
        """Forget paging state (all modes when mode is None)."""
        if mode is None:
            self._has_more.clear()
            self._oldest.clear()
            return
        mode = Mode.parse(mode)
        self._has_more.pop(mode, None)
        self._oldest.pop(mode, None)

    def _fetch(self, mode: Mode, before: int | None) -> list[Any]:
        try:
            return self.client.fetch_page(mode, before=before)
        except TornAuthError as e:
            logger.warning("Torn rejected the API key: %s", e)
            raise RecordsFetchFailed(mode.value, str(e), auth_failed=True) from e
        except TornError as e:
            logger.warning("Failed to fetch %s revives: %s", mode.value, e)
            raise RecordsFetchFailed(mode.value, str(e)) from e

    def _merge(self, mode: Mode, page: list[Any]) -> tuple[int, int]:
        """Store the readable part of a page. Returns (merged, new)."""
        valid: list[dict[str, Any]] = []
        for payload in page:
            try:
                record = InteractionRecord.from_api_response(payload, mode)
            except MalformedRecord as e:
                logger.warning("Skipping malformed %s revive: %s", mode.value, e)
                continue
            valid.append(payload)
            if len(valid) == 1:
                self._note_reviver(record)

        if not valid:
            return 0, 0
        return len(valid), self.store.put_records(mode, valid)

    def _note_reviver(self, record: InteractionRecord) -> None:
        self.last_reference_actor_id = record.reviver.id
        if record.reviver.faction is not None:
            self.last_faction_id = record.reviver.faction.id
