"""
Usage log sources.

Provide authoritative per-day usage that the tracker merges over its own
inference. A missing endpoint or failed request means "no data", never an
error for the caller.
"""

import logging
from typing import Any, Dict, Optional

import requests

from ..core.clock import is_day_key
from ..storage.models import UsageMap, to_count
from ..storage.repository import CreditRepository

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


def parse_usage_log(payload: Any) -> UsageMap:
    """Extract a day map from a usage-log response body.

    Accepted shapes:
    - ``{"YYYY-MM-DD": n, ...}``
    - ``{"data": {"YYYY-MM-DD": n, ...}}``
    - ``{"items": [{"iso": "YYYY-MM-DD", "value": n}, ...]}``

    Anything else (including a top-level list) yields an empty map. Entries
    with malformed days or non-numeric values are dropped.
    """
    if not isinstance(payload, dict):
        return {}

    if isinstance(payload.get("items"), list):
        raw: Dict[str, Any] = {}
        for item in payload["items"]:
            if isinstance(item, dict):
                raw[item.get("iso")] = item.get("value")
    elif "data" in payload:
        raw = payload["data"] if isinstance(payload["data"], dict) else {}
    else:
        raw = payload

    usage: UsageMap = {}
    for day, value in raw.items():
        count = to_count(value)
        if is_day_key(day) and count is not None:
            usage[day] = count
    return usage


class UsageLogClient:
    """HTTP client for a remote usage-log endpoint.

    Identity is carried by the session (cookies or headers set by the
    caller); the endpoint takes no required parameters.
    """

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        params: Optional[Dict[str, str]] = None
    ):
        """Initialize the client.

        Args:
            url: Usage-log endpoint URL (required)
            timeout: Request timeout in seconds
            session: Optional pre-configured session
            params: Optional query parameters (e.g. email, days)

        Raises:
            ValueError: If url is empty or timeout is not positive
        """
        if not url or not url.strip():
            raise ValueError("url is required and cannot be empty")
        if timeout <= 0:
            raise ValueError("timeout must be > 0")
        self.url = url
        self.timeout = timeout
        self.params = dict(params or {})
        self.session = session or requests.Session()

    def fetch(self) -> Optional[UsageMap]:
        """Fetch the remote day map.

        Returns:
            Day map on a successful response, None otherwise
        """
        try:
            response = self.session.get(
                self.url,
                params=self.params or None,
                headers={"Cache-Control": "no-cache", "Accept": "application/json"},
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.debug("Usage log request to %s failed: %s", self.url, e)
            return None

        if not response.ok:
            logger.debug("Usage log at %s returned HTTP %s", self.url, response.status_code)
            return None

        try:
            payload = response.json()
        except ValueError as e:
            logger.debug("Usage log at %s returned invalid JSON: %s", self.url, e)
            return None
        return parse_usage_log(payload)


class LedgerUsageLog:
    """Usage log read straight from the local credit ledger."""

    def __init__(self, repository: CreditRepository, email: str, days: int = 30):
        self.repository = repository
        self.email = email
        self.days = days

    def fetch(self) -> Optional[UsageMap]:
        items = self.repository.fetch_usage_log(days=self.days, email=self.email)
        return parse_usage_log({"items": items})
