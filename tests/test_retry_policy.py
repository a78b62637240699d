"""Tests for transient error classification and wait-time computation."""

import time

import pytest
import requests

from cost_center_automation.retry_policy import (
    MIN_RATE_LIMIT_WAIT,
    RATE_LIMIT_FALLBACK,
    backoff_delay,
    is_transient_error,
    rate_limit_delay,
)


class TestIsTransientError:
    """Substring classification of transport-level failures."""

    @pytest.mark.parametrize("message", [
        "connection refused",
        "connection reset by peer",
        "read tcp 10.0.0.1:443: i/o timeout",
        "TLS handshake timeout",
        "unexpected end of stream",
        "unexpected EOF",
        "[Errno 111] Connection refused",
        "('Connection aborted.', ConnectionResetError(104, 'Connection reset by peer'))",
        "HTTPSConnectionPool(host='api.github.com', port=443): Read timed out. (read timeout=30)",
        "_ssl.c:980: The handshake operation timed out",
        "('Connection broken: IncompleteRead(0 bytes read, 512 more expected)', ...)",
        "RemoteDisconnected('Remote end closed connection without response')",
    ])
    def test_transient_messages(self, message):
        assert is_transient_error(Exception(message)) is True

    @pytest.mark.parametrize("message", [
        "404: not found",
        "permission denied",
        "certificate verify failed: unable to get local issuer certificate",
        "Invalid URL 'api.github.com': No scheme supplied",
        "",
    ])
    def test_fatal_messages(self, message):
        assert is_transient_error(Exception(message)) is False

    def test_none_is_not_transient(self):
        assert is_transient_error(None) is False

    def test_requests_connection_error_text_is_matched(self):
        err = requests.exceptions.ConnectionError(
            "HTTPSConnectionPool(host='api.github.com', port=443): Max retries exceeded "
            "(Caused by NewConnectionError('Failed to establish a new connection: [Errno 111] Connection refused'))"
        )
        assert is_transient_error(err) is True


class TestBackoffDelay:
    """Deterministic exponential backoff."""

    @pytest.mark.parametrize("attempt,expected", [(0, 1), (1, 2), (2, 4), (3, 8)])
    def test_doubles_per_attempt(self, attempt, expected):
        assert backoff_delay(attempt) == expected

    def test_repeatable(self):
        assert [backoff_delay(2) for _ in range(5)] == [4.0] * 5

    def test_custom_base(self):
        assert backoff_delay(3, base=0.5) == 4.0


class TestRateLimitDelay:
    """Waits derived from X-RateLimit-Reset."""

    def test_future_reset(self):
        reset = int(time.time()) + 30
        wait = rate_limit_delay(str(reset))
        assert 29 <= wait <= 33

    def test_future_reset_with_fixed_clock(self):
        assert rate_limit_delay("1700000030", now=1700000000.0) == 30.0

    def test_past_reset_floors_to_one_second(self):
        reset = int(time.time()) - 10
        assert rate_limit_delay(str(reset)) == MIN_RATE_LIMIT_WAIT == 1.0

    def test_reset_equal_to_now_floors_to_one_second(self):
        assert rate_limit_delay("1700000000", now=1700000000.0) == 1.0

    @pytest.mark.parametrize("header", [None, "", "bad", "12.5.3"])
    def test_missing_or_invalid_header_uses_fallback(self, header):
        assert rate_limit_delay(header) == RATE_LIMIT_FALLBACK

    def test_integer_header_accepted(self):
        assert rate_limit_delay(1700000010, now=1700000000.0) == 10.0
