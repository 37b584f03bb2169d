"""Tests for admin session tokens and the session context."""

from datetime import timedelta

import pytest

from receptionist.auth.jwt import create_access_token, decode_token
from receptionist.clients.session import SessionContext
from receptionist.onboarding.errors import SessionExpiredError

from conftest import TENANT_ID


@pytest.mark.unit
class TestTokens:

    def test_round_trip_carries_tenant(self):
        payload = decode_token(create_access_token("user-1", tenant_id=TENANT_ID))
        assert payload["sub"] == "user-1"
        assert payload["tenant_id"] == TENANT_ID
        assert payload["type"] == "access"

    def test_token_without_tenant(self):
        payload = decode_token(create_access_token("user-1"))
        assert "tenant_id" not in payload

    def test_expired_token_decodes_to_nothing(self):
        token = create_access_token("user-1", TENANT_ID, expires_delta=timedelta(seconds=-1))
        assert decode_token(token) == {}

    def test_garbage_decodes_to_nothing(self):
        assert decode_token("not-a-jwt") == {}


@pytest.mark.unit
class TestSessionContext:

    def test_headers(self):
        ctx = SessionContext(tenant_id=TENANT_ID, token="abc")
        assert ctx.headers() == {"Authorization": "Bearer abc", "X-Tenant-ID": TENANT_ID}

    def test_dropped_session_fails_fast(self):
        ctx = SessionContext(tenant_id=TENANT_ID, token="abc")
        ctx.drop()
        assert not ctx.is_active
        with pytest.raises(SessionExpiredError):
            ctx.headers()
