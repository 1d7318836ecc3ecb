"""
Torn API v2 client implementation.
"""

import logging
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..schemas import Mode

logger = logging.getLogger(__name__)

# Torn error codes meaning the key is wrong, paused, or lacks access
AUTH_ERROR_CODES = frozenset({2, 10, 13, 16, 18})

LOG_ENDPOINT = "/v2/user/log"
LOG_LIMIT = 100


class TornError(Exception):
    """Base exception for Torn client errors."""

    pass


class TornAPIError(TornError):
    """API returned an error response."""

    def __init__(self, status_code: int, message: str, code: int | None = None):
        self.status_code = status_code
        self.message = message
        self.code = code
        detail = f" (code {code})" if code is not None else ""
        super().__init__(f"Torn API error {status_code}{detail}: {message}")


class TornAuthError(TornAPIError):
    """The API key was rejected or lacks the required access."""

    pass


class TornConnectionError(TornError):
    """Failed to connect to the Torn API."""

    pass


class TornClient:
    """
    Client for the Torn API v2 revive endpoints.

    Features:
    - Fetch one page of outgoing revives (newest first)
    - Page backwards with a ``before`` timestamp
    - Read log entries involving one player
    - Automatic retry with backoff
    """

    DEFAULT_BASE_URL = "https://api.torn.com"
    DEFAULT_TIMEOUT = 30
    DEFAULT_PAGE_SIZE = 100

    ENDPOINTS = {
        Mode.INDIVIDUAL: "/v2/user/revives",
        Mode.GROUP: "/v2/faction/revives",
    }

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = DEFAULT_TIMEOUT,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
    ):
        """
        Initialize Torn client.

        Args:
            api_key: Torn API key
            base_url: API root (e.g., "https://api.torn.com")
            timeout: Request timeout in seconds
            page_size: Revives per page (Torn caps this at 100)
            max_retries: Maximum retry attempts for transient failures
            backoff_factor: Backoff factor for retries
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.page_size = page_size

        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"ApiKey {api_key}",
            "Accept": "application/json",
        })

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def _request(self, endpoint: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Make a GET request and return the decoded body."""
        url = f"{self.base_url}{endpoint}"

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.ConnectionError as e:
            raise TornConnectionError(f"Failed to connect to Torn at {self.base_url}: {e}") from e
        except requests.exceptions.Timeout as e:
            raise TornConnectionError(f"Request to Torn timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TornError(f"Request failed: {e}") from e

        if response.status_code in (401, 403):
            raise TornAuthError(response.status_code, response.reason or "Unauthorized")
        if not response.ok:
            raise TornAPIError(response.status_code, response.reason or "Request failed")

        try:
            data = response.json()
        except ValueError as e:
            raise TornAPIError(response.status_code, f"Invalid JSON in response: {e}") from e

        # Torn reports most failures as HTTP 200 with an error object
        error = data.get("error") if isinstance(data, dict) else None
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("error", "Unknown error") if isinstance(error, dict) else str(error)
            if code in AUTH_ERROR_CODES:
                raise TornAuthError(response.status_code, message, code)
            raise TornAPIError(response.status_code, message, code)

        return data

    def _page_params(self, mode: Mode, limit: int, before: int | None) -> dict[str, Any]:
        params: dict[str, Any] = {
            "filters": "outgoing",
            "limit": limit,
            "striptags": "true",
        }
        if mode is Mode.GROUP:
            params["sort"] = "DESC"
        if before is not None:
            params["to"] = before
        return params

    def fetch_page(
        self,
        mode: Mode | str,
        before: int | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch one page of outgoing revives.

        Args:
            mode: individual (user revives) or group (faction revives)
            before: Only return revives at or before this timestamp
            limit: Page size (defaults to the client's page size)

        Returns:
            Raw revive payloads as returned by Torn
        """
        mode = Mode.parse(mode)
        params = self._page_params(mode, limit or self.page_size, before)
        data = self._request(self.ENDPOINTS[mode], params=params)
        revives = data.get("revives") or []
        logger.debug(
            "Fetched %d %s revives (before=%s)", len(revives), mode.value, before
        )
        return list(revives)

    def fetch_logs(self, target_id: int, limit: int = LOG_LIMIT) -> list[dict[str, Any]]:
        """
        Fetch the player's own log entries involving one other player.

        Args:
            target_id: Player the entries must involve
            limit: Maximum entries (Torn caps this at 100)

        Returns:
            Raw log entries, newest first
        """
        data = self._request(LOG_ENDPOINT, params={"target": target_id, "limit": limit})
        entries = data.get("log") or []
        logger.debug("Fetched %d log entries for target %s", len(entries), target_id)
        return list(entries)

    def test_connection(self, mode: Mode | str = Mode.INDIVIDUAL) -> bool:
        """Check that the key can read the mode's revive log."""
        try:
            self.fetch_page(mode, limit=1)
            return True
        except TornError as e:
            logger.warning("Torn connection test failed: %s", e)
            return False
