"""
Unit tests for SDK layer.

Tests usage-log parsing, the HTTP client and the ledger-backed usage log.
"""

import os
import tempfile
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
import requests

from credit_usage.sdk.usage_log import LedgerUsageLog, UsageLogClient, parse_usage_log
from credit_usage.storage.repository import CreditRepository, initialize_schema


def make_response(status_code=200, payload=None, json_error=None):
    response = Mock()
    response.status_code = status_code
    response.ok = status_code < 400
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


class TestParseUsageLog:
    """Test accepted response shapes."""

    def test_bare_map(self):
        assert parse_usage_log({"2024-01-01": 5, "2024-01-02": 0}) == {
            "2024-01-01": 5, "2024-01-02": 0
        }

    def test_data_envelope(self):
        assert parse_usage_log({"data": {"2024-01-01": 5}}) == {"2024-01-01": 5}

    def test_items_list(self):
        payload = {"items": [
            {"iso": "2024-01-01", "value": 3},
            {"iso": "2024-01-02", "value": "7"},
            "junk",
        ]}
        assert parse_usage_log(payload) == {"2024-01-01": 3, "2024-01-02": 7}

    def test_drops_malformed_entries(self):
        payload = {"2024-01-01": "many", "yesterday": 4, "2024-13-01": 1, "2024-01-02": 2.8}
        assert parse_usage_log(payload) == {"2024-01-02": 2}

    @pytest.mark.parametrize("payload", [
        None,
        [],
        [{"iso": "2024-01-01", "value": 1}],
        "2024-01-01",
        {"data": [1, 2]},
    ])
    def test_unsupported_shapes_are_empty(self, payload):
        assert parse_usage_log(payload) == {}


class TestUsageLogClient:
    """Test the HTTP usage-log client."""

    def setup_method(self):
        self.session = Mock()
        self.client = UsageLogClient(
            "https://example.com/api/usage-log",
            timeout=2.0,
            session=self.session,
            params={"email": "user@example.com"}
        )

    def test_fetch_success(self):
        self.session.get.return_value = make_response(
            payload={"items": [{"iso": "2024-01-01", "value": 12}]}
        )

        assert self.client.fetch() == {"2024-01-01": 12}

        args, kwargs = self.session.get.call_args
        assert args == ("https://example.com/api/usage-log",)
        assert kwargs["timeout"] == 2.0
        assert kwargs["params"] == {"email": "user@example.com"}
        assert kwargs["headers"]["Cache-Control"] == "no-cache"

    def test_http_error_returns_none(self):
        self.session.get.return_value = make_response(status_code=404)

        assert self.client.fetch() is None

    def test_connection_error_returns_none(self):
        self.session.get.side_effect = requests.ConnectionError("offline")

        assert self.client.fetch() is None

    def test_timeout_returns_none(self):
        self.session.get.side_effect = requests.Timeout("slow")

        assert self.client.fetch() is None

    def test_invalid_json_returns_none(self):
        self.session.get.return_value = make_response(json_error=ValueError("not json"))

        assert self.client.fetch() is None

    def test_empty_url_raises_error(self):
        with pytest.raises(ValueError, match="url is required"):
            UsageLogClient("  ")

    def test_invalid_timeout_raises_error(self):
        with pytest.raises(ValueError, match="timeout must be > 0"):
            UsageLogClient("https://example.com", timeout=0)


class TestLedgerUsageLog:
    """Test the usage log read from the local ledger."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "test.db")
        initialize_schema(self.db_path)
        self.repo = CreditRepository(self.db_path)
        self.repo.register_account("user@example.com")
        self.repo.register_account("other@example.com")

    def teardown_method(self):
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_fetch_returns_dense_map_for_account(self):
        today = datetime.now(timezone.utc).date().isoformat()
        self.repo.consume_credits("user@example.com", 40)
        self.repo.consume_credits("other@example.com", 99)

        usage = LedgerUsageLog(self.repo, "user@example.com", days=7).fetch()

        assert len(usage) == 7
        assert usage[today] == 40
        assert sum(usage.values()) == 40
