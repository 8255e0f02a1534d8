"""Tests for bearer tokens: issue, verify, expiry, tampering."""

import time

import pytest

from thinkvoice_console.auth.tokens import (
    KIND_SUPER_ADMIN,
    KIND_USER,
    Identity,
    issue_token,
    verify_token,
)
from thinkvoice_console.common.exceptions import TokenExpiredError, TokenInvalidError

SECRET = "unit-test-secret"


def user_identity(**overrides) -> Identity:
    defaults = {"kind": KIND_USER, "subject_id": 7, "tenant_id": 3, "role": "admin"}
    defaults.update(overrides)
    return Identity(**defaults)


class TestIssueVerify:
    def test_roundtrip_user(self):
        token = issue_token(user_identity(), ttl=60, secret=SECRET)
        identity = verify_token(token, secret=SECRET)
        assert identity.kind == KIND_USER
        assert identity.subject_id == 7
        assert identity.tenant_id == 3
        assert identity.role == "admin"
        assert not identity.is_impersonation

    def test_impersonation_claim_survives(self):
        token = issue_token(user_identity(impersonator_id=1), ttl=60, secret=SECRET)
        identity = verify_token(token, secret=SECRET)
        assert identity.impersonator_id == 1
        assert identity.is_impersonation

    def test_super_admin_without_tenant(self):
        token = issue_token(
            Identity(kind=KIND_SUPER_ADMIN, subject_id=1, role="super_admin"),
            ttl=60, secret=SECRET,
        )
        identity = verify_token(token, secret=SECRET)
        assert identity.is_super_admin
        assert identity.tenant_id is None


class TestRejection:
    def test_wrong_secret(self):
        token = issue_token(user_identity(), ttl=60, secret=SECRET)
        with pytest.raises(TokenInvalidError):
            verify_token(token, secret="other-secret")

    def test_garbage(self):
        with pytest.raises(TokenInvalidError):
            verify_token("not-a-token", secret=SECRET)

    def test_tampered(self):
        token = issue_token(user_identity(), ttl=60, secret=SECRET)
        head, _, tail = token.rpartition(".")
        tampered = head + "." + ("A" if tail[0] != "A" else "B") + tail[1:]
        with pytest.raises(TokenInvalidError):
            verify_token(tampered, secret=SECRET)

    def test_expired(self):
        token = issue_token(user_identity(), ttl=-1, secret=SECRET)
        with pytest.raises(TokenExpiredError):
            verify_token(token, secret=SECRET)

    def test_user_token_requires_tenant(self):
        token = issue_token(user_identity(tenant_id=None), ttl=60, secret=SECRET)
        with pytest.raises(TokenInvalidError):
            verify_token(token, secret=SECRET)

    def test_impersonation_ttl_shorter_than_session(self):
        short = issue_token(user_identity(impersonator_id=1), ttl=1, secret=SECRET)
        long = issue_token(user_identity(), ttl=3600, secret=SECRET)
        time.sleep(1.1)
        with pytest.raises(TokenExpiredError):
            verify_token(short, secret=SECRET)
        assert verify_token(long, secret=SECRET).subject_id == 7
