"""Unit tests for expiration math."""

from datetime import timedelta

import pytest

from filecache.expiration import (
    coerce_expiration,
    get_ttl_remaining,
    is_expired,
    resolve_expiration,
)


class TestResolveExpiration:
    """Test TTL resolution to absolute timestamps."""

    def test_none_uses_default(self):
        assert resolve_expiration(None, 1000, 3600) == 4600

    def test_integer_seconds(self):
        assert resolve_expiration(60, 1000, 3600) == 1060

    def test_timedelta(self):
        assert resolve_expiration(timedelta(minutes=2), 1000, 3600) == 1120

    def test_zero_ttl_expires_now(self):
        """Test that zero TTL is allowed and yields an expired entry."""
        expiration = resolve_expiration(0, 1000, 3600)
        assert expiration == 1000
        assert is_expired(expiration, 1000)

    def test_negative_ttl_allowed(self):
        """Test that negative TTLs are not rejected."""
        assert resolve_expiration(-10, 1000, 3600) == 990
        assert resolve_expiration(timedelta(seconds=-10), 1000, 3600) == 990

    def test_negative_default_allowed(self):
        assert resolve_expiration(None, 1000, -1) == 999

    def test_fractional_now_is_truncated(self):
        """Test that the current time is truncated to whole seconds."""
        assert resolve_expiration(1, 1000.7, 3600) == 1001
        assert not is_expired(1001, 1000.7)
        assert is_expired(1001, 1001.2)

    def test_zero_ttl_with_fractional_now_is_expired(self):
        expiration = resolve_expiration(0, 1000.3, 3600)
        assert expiration == 1000
        assert is_expired(expiration, 1000.3)

    def test_float_seconds(self):
        assert resolve_expiration(1.9, 1000, 3600) == 1001

    @pytest.mark.parametrize("ttl", ["60", True, [60], object()])
    def test_unsupported_types_raise(self, ttl):
        with pytest.raises(TypeError):
            resolve_expiration(ttl, 1000, 3600)

    def test_default_change_does_not_affect_result(self):
        """Test that a resolved expiration ignores later default changes."""
        expiration = resolve_expiration(None, 1000, 60)
        assert expiration == 1060
        assert resolve_expiration(None, 1000, 120) == 1120


class TestIsExpired:
    """Test expiration checks."""

    def test_future_not_expired(self):
        assert is_expired(1001, 1000) is False

    def test_boundary_is_expired(self):
        """Test that an entry is valid only while expiration > now."""
        assert is_expired(1000, 1000) is True

    def test_past_expired(self):
        assert is_expired(999, 1000) is True


class TestTTLRemaining:
    def test_remaining(self):
        assert get_ttl_remaining(1060, 1000) == 60

    def test_expired_is_zero(self):
        assert get_ttl_remaining(900, 1000) == 0


class TestCoerceExpiration:
    @pytest.mark.parametrize(
        "raw,expected",
        [(1000, 1000), (1000.7, 1000), ("1000", None), (None, None), (True, None)],
    )
    def test_coerce(self, raw, expected):
        assert coerce_expiration(raw) == expected

    def test_non_finite_rejected(self):
        assert coerce_expiration(float("inf")) is None
        assert coerce_expiration(float("nan")) is None
