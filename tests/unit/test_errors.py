"""
Unit tests for id parsing, the exception hierarchy and error sanitization.
"""
import json
from unittest.mock import MagicMock

import pytest
from starlette.requests import Request

from comicsdb.api.deps import found, parse_id, parse_optional_id
from comicsdb.core.error_handler import is_sensitive_error, sanitize_error_message
from comicsdb.core.exceptions import (
    CatalogError,
    EntityNotFoundError,
    ImageProviderError,
    ImageProviderRateLimited,
    InvalidIdentifierError,
)
from comicsdb.core.rate_limit import get_client_ip, rate_limit_exceeded_handler, retry_after_seconds


class TestParseId:
    @pytest.mark.parametrize("value,expected", [("5", 5), (" 7 ", 7), ("0012", 12)])
    def test_valid(self, value, expected):
        assert parse_id(value) == expected

    @pytest.mark.parametrize("value", ["0", "-1", "abc", "1.5", "", "1e3"])
    def test_invalid(self, value):
        """Non-numeric, zero and negative ids are rejected as 400."""
        with pytest.raises(InvalidIdentifierError) as exc_info:
            parse_id(value, "series")
        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Invalid series id"

    def test_optional(self):
        assert parse_optional_id(None) is None
        assert parse_optional_id("  ") is None
        assert parse_optional_id("3") == 3


class TestFound:
    def test_passes_value_through(self):
        value = {"id": 1}
        assert found(value, "Series", 1) is value

    def test_none_is_404(self):
        with pytest.raises(EntityNotFoundError) as exc_info:
            found(None, "Series", 42)
        assert exc_info.value.status_code == 404
        assert exc_info.value.details == {"entity": "Series", "id": "42"}


class TestExceptionHierarchy:
    def test_codes(self):
        assert InvalidIdentifierError("x").code == "INVALID_IDENTIFIER"
        assert EntityNotFoundError("Comic", 1).code == "NOT_FOUND"
        assert ImageProviderRateLimited("slow down").code == "IMAGE_PROVIDER_RATE_LIMITED"

    def test_subclassing(self):
        assert issubclass(ImageProviderRateLimited, ImageProviderError)
        assert issubclass(ImageProviderError, CatalogError)

    def test_to_dict(self):
        exc = InvalidIdentifierError("Invalid year", value=0)
        data = exc.to_dict()
        assert data["error_type"] == "InvalidIdentifierError"
        assert data["details"] == {"value": "0"}
        assert data["severity"] == "P3"

    def test_rate_limited_keeps_retry_after(self):
        exc = ImageProviderRateLimited("429", retry_after=30.0)
        assert exc.retry_after == 30.0
        assert exc.details["retry_after"] == 30.0


class TestSanitization:
    def test_sensitive_messages_hidden(self):
        assert is_sensitive_error("(sqlalchemy.exc.OperationalError) no such table")
        message = sanitize_error_message("asyncpg: password authentication failed")
        assert "password" not in message

    def test_plain_messages_kept(self):
        assert sanitize_error_message("Series not found") == "Series not found"

    def test_long_messages_truncated(self):
        message = sanitize_error_message("x" * 500)
        assert len(message) == 203
        assert message.endswith("...")


def make_request(headers=None) -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/api/metron-image/1002",
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": ("10.0.0.5", 5000),
    })


class TestRateLimitHandler:
    def test_client_ip_prefers_forwarded_header(self):
        assert get_client_ip(make_request({"X-Forwarded-For": "1.2.3.4, 10.0.0.1"})) == "1.2.3.4"
        assert get_client_ip(make_request()) == "10.0.0.5"

    def test_429_body_and_retry_after(self):
        exc = MagicMock(detail="30 per 1 minute")
        exc.limit.limit.get_expiry.return_value = 60

        resp = rate_limit_exceeded_handler(make_request(), exc)

        assert resp.status_code == 429
        assert resp.headers["Retry-After"] == "60"
        body = json.loads(resp.body)
        assert body["code"] == "RATE_LIMITED"
        assert body["retry_after"] == 60
        assert "30 per 1 minute" in body["error"]

    def test_retry_after_fallback(self):
        exc = MagicMock()
        exc.limit.limit.get_expiry.side_effect = TypeError("no window")
        assert retry_after_seconds(exc) == 60
