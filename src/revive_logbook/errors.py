"""
Domain errors shared across the store, sync and view layers.
"""


class ReviveLogbookError(Exception):
    """Base exception for revive logbook errors."""

    pass


class StorageUnavailable(ReviveLogbookError):
    """The backing store could not be opened or used.

    Fatal to the call that raised it. Re-initializing the store recovers.
    """

    pass


class RecordsFetchFailed(ReviveLogbookError):
    """Fetching revives (or log entries) from the Torn API failed.

    Cached records and cursor position are left untouched so the caller
    can retry.
    """

    def __init__(self, mode: str, message: str, auth_failed: bool = False, what: str = "revives"):
        self.mode = mode
        self.auth_failed = auth_failed
        super().__init__(f"Failed to fetch {mode} {what}: {message}")


class MalformedRecord(ReviveLogbookError):
    """A raw revive payload did not have the expected shape."""

    def __init__(self, message: str, payload: object = None):
        self.payload = payload
        super().__init__(message)


class InvalidFilterState(ReviveLogbookError):
    """A filter value can never match (unknown category, inverted dates)."""

    pass
