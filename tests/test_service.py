"""Tests for auth/service.py -- AuthenticationService.

Covers:
- register() hashes the password in place and stores only the hash
- Duplicate registration raises ConflictError and keeps exactly one record
- Concurrent duplicate registrations: exactly one wins (in-memory and SQL)
- verify_credentials() is False for unknown email and for wrong password
- authenticate() returns a session token carrying the stored identity
- get_by_id() / get_by_email() raise NotFoundError; get_all_users() lists all
- Password reset end to end, including invalid, expired and orphaned tokens
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlsplit

import pytest

from auth.errors import ConflictError, ErrorKind, InvalidTokenError, NotFoundError
from auth.models import User
from auth.service import AuthenticationService
from auth.tokens import TokenIssuer

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _register(service: AuthenticationService, email: str = "a@x.com", password: str = "secret", **kw) -> User:
    return asyncio.run(service.register(User(email=email, password=password, **kw)))


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def test_register_hashes_password(service, directory, hasher):
    user = _register(service)
    assert user.user_id is not None
    stored = asyncio.run(directory.find(user.user_id))
    assert stored.password != "secret"
    assert hasher.verify("secret", stored.password)


def test_register_duplicate_email_conflicts(service, directory):
    _register(service)
    with pytest.raises(ConflictError) as exc_info:
        _register(service, password="different")
    assert exc_info.value.kind is ErrorKind.CONFLICT
    assert "password" not in exc_info.value.message.lower()
    records = asyncio.run(directory.find_all())
    assert [u.email for u in records] == ["a@x.com"]


@pytest.mark.parametrize("directory_fixture", ["directory", "sql_directory"])
def test_concurrent_duplicate_registration_one_wins(request, hasher, issuer, validator, directory_fixture):
    d = request.getfixturevalue(directory_fixture)
    svc = AuthenticationService(d, hasher, issuer, validator)

    async def race():
        return await asyncio.gather(
            svc.register(User(email="race@x.com", password="one")),
            svc.register(User(email="race@x.com", password="two")),
            return_exceptions=True,
        )

    results = asyncio.run(race())
    assert sum(isinstance(r, ConflictError) for r in results) == 1
    assert sum(isinstance(r, User) for r in results) == 1
    assert len(asyncio.run(d.find_all())) == 1


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


def test_verify_credentials_end_to_end(service):
    _register(service)
    assert asyncio.run(service.verify_credentials("a@x.com", "secret")) is True
    assert asyncio.run(service.verify_credentials("a@x.com", "wrong")) is False


def test_verify_credentials_unknown_email_is_false(service):
    assert asyncio.run(service.verify_credentials("nobody@x.com", "secret")) is False


def test_authenticate_returns_session_token(service, validator):
    user = _register(service, is_admin=True)
    token = asyncio.run(service.authenticate("a@x.com", "secret"))
    claims = validator.validate_session_token(token)
    assert claims.user_id == user.user_id
    assert claims.is_admin is True
    assert claims.email == "a@x.com"


@pytest.mark.parametrize("email,password", [("a@x.com", "wrong"), ("nobody@x.com", "secret")])
def test_authenticate_failure_returns_none(service, email, password):
    _register(service)
    assert asyncio.run(service.authenticate(email, password)) is None


def test_issue_session_round_trip(service, validator):
    user = _register(service)
    claims = validator.validate_session_token(service.issue_session(user))
    assert claims.user_id == user.user_id
    assert claims.is_admin is False


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def test_get_by_id_and_email(service):
    user = _register(service)
    assert asyncio.run(service.get_by_id(user.user_id)).email == "a@x.com"
    assert asyncio.run(service.get_by_email("a@x.com")).user_id == user.user_id


def test_get_by_id_missing_raises_not_found(service):
    with pytest.raises(NotFoundError) as exc_info:
        asyncio.run(service.get_by_id(12345))
    assert exc_info.value.kind is ErrorKind.NOT_FOUND


def test_get_by_email_missing_raises_not_found(service):
    with pytest.raises(NotFoundError):
        asyncio.run(service.get_by_email("nobody@x.com"))


def test_get_all_users(service):
    _register(service, "b@x.com")
    _register(service, "a@x.com")
    assert [u.email for u in asyncio.run(service.get_all_users())] == ["a@x.com", "b@x.com"]


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


def test_password_reset_end_to_end(service):
    user = _register(service)
    token, link = service.request_password_reset(user)
    assert parse_qs(urlsplit(link).query)["token"] == [token]

    asyncio.run(service.complete_password_reset(token, "newpass"))

    assert asyncio.run(service.verify_credentials("a@x.com", "newpass")) is True
    assert asyncio.run(service.verify_credentials("a@x.com", "secret")) is False


def test_password_reset_against_sql_directory(sql_directory, hasher, issuer, validator):
    svc = AuthenticationService(sql_directory, hasher, issuer, validator)
    user = _register(svc)
    token, _ = svc.request_password_reset(user)
    asyncio.run(svc.complete_password_reset(token, "newpass"))
    assert asyncio.run(svc.verify_credentials("a@x.com", "newpass")) is True
    assert asyncio.run(svc.verify_credentials("a@x.com", "secret")) is False


@pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
def test_complete_reset_with_bad_token_raises_invalid_token(service, token):
    _register(service)
    with pytest.raises(InvalidTokenError) as exc_info:
        asyncio.run(service.complete_password_reset(token, "newpass"))
    assert exc_info.value.kind is ErrorKind.INVALID_TOKEN
    assert asyncio.run(service.verify_credentials("a@x.com", "secret")) is True


def test_complete_reset_with_expired_token_raises_invalid_token(service, token_config):
    user = _register(service)
    stale = TokenIssuer(token_config, clock=lambda: datetime.now(timezone.utc) - timedelta(minutes=61))
    with pytest.raises(InvalidTokenError):
        asyncio.run(service.complete_password_reset(stale.issue_reset_token(user), "newpass"))


def test_complete_reset_with_just_expired_token_raises_invalid_token(service, token_config):
    user = _register(service)
    stale = TokenIssuer(token_config, clock=lambda: datetime.now(timezone.utc) - timedelta(minutes=60, seconds=2))
    with pytest.raises(InvalidTokenError):
        asyncio.run(service.complete_password_reset(stale.issue_reset_token(user), "newpass"))
    assert asyncio.run(service.verify_credentials("a@x.com", "secret")) is True


def test_complete_reset_for_vanished_user_raises_not_found(service):
    ghost = User(email="ghost@x.com", password="h", user_id=999)
    token, _ = service.request_password_reset(ghost)
    with pytest.raises(NotFoundError):
        asyncio.run(service.complete_password_reset(token, "newpass"))


def test_reset_token_reusable_until_expiry(service):
    user = _register(service)
    token, _ = service.request_password_reset(user)
    asyncio.run(service.complete_password_reset(token, "first"))
    asyncio.run(service.complete_password_reset(token, "second"))
    assert asyncio.run(service.verify_credentials("a@x.com", "second")) is True


def test_register_and_reset_with_long_passwords(service):
    user = _register(service, "long@x.com", "b" * 100)
    assert asyncio.run(service.verify_credentials("long@x.com", "b" * 100)) is True
    token, _ = service.request_password_reset(user)
    asyncio.run(service.complete_password_reset(token, "c" * 200))
    assert asyncio.run(service.verify_credentials("long@x.com", "c" * 200)) is True
    assert asyncio.run(service.verify_credentials("long@x.com", "b" * 100)) is False
