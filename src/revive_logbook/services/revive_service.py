"""Revive logbook service.

Ties the record store, sync cursor, enrichment and view together for one
active mode: load from cache, refresh, load more, payments, billing,
the per-target payment timeline, logout.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..enrichment import EnrichedRecord, detect_reference_actor, enrich
from ..errors import RecordsFetchFailed
from ..schemas import Mode
from ..torn_client import TornAuthError, TornClient, TornError
from ..view import ViewEngine
from .billing import BillingSummary, summarize_billing
from .sync_cursor import SyncCursor
from .timeline import TimelineEvent, build_timeline

if TYPE_CHECKING:
    from datetime import tzinfo

    from ..config import Config
    from ..state_store import RecordStore

logger = logging.getLogger(__name__)


class ReviveService:
    """Service for browsing and syncing the active mode's revives.

    Enriched records are rebuilt from the full cache after every merge so
    skill gains always reflect every cached revive.
    """

    def __init__(
        self,
        record_store: RecordStore,
        config: Config,
        torn_client: TornClient | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            record_store: Initialized record store.
            config: Application configuration.
            torn_client: Torn client; built from the saved key when omitted.
            tz: Timezone for date filters (None: local time).
        """
        self.store = record_store
        self.config = config
        self._client = torn_client
        self._cursor: SyncCursor | None = None
        self.mode: Mode = record_store.get_api_mode(config.default_mode)
        self.reference_actor_id: int = 0
        self.view = ViewEngine(
            record_store,
            page_size=config.view.page_size,
            tz=tz,
            on_backfill=self.load_more,
            can_backfill=self.has_more,
        )

    @property
    def client(self) -> TornClient:
        if self._client is None:
            api_key = self.config.torn.api_key or self.store.get_api_key()
            if not api_key:
                raise RecordsFetchFailed(self.mode.value, "no API key saved", auth_failed=True)
            self._client = TornClient(
                api_key=api_key,
                base_url=self.config.torn.base_url,
                timeout=self.config.torn.timeout_seconds,
                page_size=self.config.torn.page_size,
                max_retries=self.config.torn.max_retries,
                backoff_factor=self.config.torn.backoff_factor,
            )
        return self._client

    @property
    def cursor(self) -> SyncCursor:
        if self._cursor is None:
            self._cursor = SyncCursor(self.client, self.store)
        return self._cursor

    def switch_mode(self, mode: Mode | str) -> list[EnrichedRecord]:
        """Make another mode active (persisted) and load its cache."""
        self.mode = Mode.parse(mode)
        self.store.save_api_mode(self.mode)
        self.reference_actor_id = 0
        return self.load_from_cache()

    def load_from_cache(self) -> list[EnrichedRecord]:
        """Enrich every cached revive of the active mode and show it."""
        raw = self.store.get_all(self.mode)
        if not self.reference_actor_id:
            self.reference_actor_id = detect_reference_actor(raw)
        enriched = enrich(raw, self.reference_actor_id)
        self.view.set_records(enriched)
        logger.debug("Loaded %d cached %s revives", len(enriched), self.mode.value)
        return enriched

    def refresh(self) -> int:
        """Fetch the newest page, then reload from cache."""
        merged = self.cursor.refresh(self.mode)
        self._adopt_reference_actor()
        self.load_from_cache()
        return merged

    def load_more(self) -> int:
        """Fetch the next older page, then reload from cache."""
        merged = self.cursor.backfill(self.mode)
        if merged:
            self._adopt_reference_actor()
            self.load_from_cache()
        return merged

    def has_more(self) -> bool:
        return self._cursor is None or self._cursor.has_more(self.mode)

    def toggle_payment(self, record: EnrichedRecord) -> bool:
        """Flip the paid flag of a revive. Returns the new value."""
        return self.store.toggle_payment(record.timestamp, record.record.target.id)

    def bill(
        self,
        target_name: str,
        include_failures: bool = False,
        min_chance: float = 0,
        since: int | None = None,
        until: int | None = None,
    ) -> BillingSummary:
        """Billing totals for a target over every cached revive of the mode."""
        return summarize_billing(
            self.view.all_records(),
            target_name,
            self.store.get_receipt_settings(),
            include_failures=include_failures,
            min_chance=min_chance,
            since=since,
            until=until,
        )

    def interaction_timeline(self, target_id: int) -> list[TimelineEvent]:
        """Cached revives on a target merged with their payment log entries.

        Raises:
            RecordsFetchFailed: if the log could not be fetched.
        """
        try:
            logs = self.client.fetch_logs(target_id)
        except TornAuthError as e:
            raise RecordsFetchFailed("user", str(e), auth_failed=True, what="logs") from e
        except TornError as e:
            logger.warning("Failed to fetch logs for target %s: %s", target_id, e)
            raise RecordsFetchFailed("user", str(e), what="logs") from e
        return build_timeline(logs, self.view.all_records(), target_id)

    def logout(self) -> None:
        """Forget the API key; cached revives and payments stay."""
        self.store.clear_api_key()
        self._client = None
        self._cursor = None
        logger.info("API key cleared")

    def clear_all_data(self) -> None:
        """Forget the key, every cached revive, payment and exclusion."""
        self.store.clear_all()
        self._client = None
        self._cursor = None
        self.reference_actor_id = 0
        self.view.set_records([])
        self.view.clear_filters()
        self.view.reload_exclusions()

    def _adopt_reference_actor(self) -> None:
        if self._cursor is not None and self._cursor.last_reference_actor_id:
            self.reference_actor_id = self._cursor.last_reference_actor_id
