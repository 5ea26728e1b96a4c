"""
auth/tokens.py -- Session and password-reset JWTs.

Security design decisions:
  JWT: python-jose with HS256. Both token kinds are signed with the same
       symmetric key, taken from the TokenConfig handed in at construction.
       An empty key raises ConfigurationError there, before any token work.

  Session tokens: sub=email, jti=random UUID4, IsAdmin, UserId, iss, aud, exp
       (now + 120 min by default). IsAdmin and UserId are stringified
       ("True"/"False", "42") so any JWT consumer sees plain string claims.
       Signed, not encrypted -- every holder can read the claims.

  Reset tokens: UserId and exp (now + 60 min by default) only. No iss/aud.
       They are single-purpose bearer tokens scoped by signature + expiry +
       UserId, so validation skips issuer/audience checks.

  Validation: zero clock-skew leeway. Any failure -- bad signature,
       malformed token, expired, missing or garbled claim -- returns None.
       Callers cannot tell "expired" from "forged" from "malformed".

Token issuance and validation are pure CPU work with no shared mutable state;
one TokenIssuer / TokenValidator may be used from any number of coroutines.

Layer rule: stdlib + python-jose + auth.models / auth.errors only.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from urllib.parse import quote

from jose import JWTError, jwt

from auth.errors import ConfigurationError
from auth.models import ResetClaims, SessionClaims, TokenConfig, User

logger = logging.getLogger("accountauth.auth")

_ALGORITHM = "HS256"

RESET_PATH = "/reset-password"

# Claim names shared by issuer and validator.
_CLAIM_USER_ID = "UserId"
_CLAIM_IS_ADMIN = "IsAdmin"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_signing_key(config: TokenConfig) -> None:
    if not config.signing_key or not config.signing_key.strip():
        raise ConfigurationError("JWT signing key configuration is missing or empty.")


def _user_id_claim(user: User) -> str:
    if user.user_id is None:
        raise ValueError("Cannot issue a token for a user that has no user_id yet.")
    return str(user.user_id)


# ---------------------------------------------------------------------------
# Issuer
# ---------------------------------------------------------------------------


class TokenIssuer:
    """Builds and signs session and password-reset tokens.

    clock returns the current aware UTC datetime. Tests pass a fixed or
    shifted clock to mint already-expired tokens.
    """

    def __init__(self, config: TokenConfig, clock: Callable[[], datetime] = _utcnow) -> None:
        _require_signing_key(config)
        self._config = config
        self._clock = clock

    def issue_session_token(self, user: User) -> str:
        """Encode a signed session JWT for an already-authenticated user.

        Raises ValueError if the user has not been stored (user_id is None).
        """
        expire = self._clock() + self._config.session_lifetime
        payload = {
            "sub": user.email,
            "jti": str(uuid.uuid4()),
            _CLAIM_IS_ADMIN: str(bool(user.is_admin)),
            _CLAIM_USER_ID: _user_id_claim(user),
            "iss": self._config.issuer,
            "aud": self._config.audience,
            "exp": expire,
        }
        return jwt.encode(payload, self._config.signing_key, algorithm=_ALGORITHM)

    def issue_reset_token(self, user: User) -> str:
        """Encode a signed password-reset JWT carrying only UserId and exp.

        Raises ValueError if the user has not been stored (user_id is None).
        """
        expire = self._clock() + self._config.reset_lifetime
        payload = {
            _CLAIM_USER_ID: _user_id_claim(user),
            "exp": expire,
        }
        return jwt.encode(payload, self._config.signing_key, algorithm=_ALGORITHM)

    def build_reset_link(self, token: str) -> str:
        """Return <frontend_url>/reset-password?token=<urlencoded token>.

        A trailing slash on the configured base URL is dropped so the path
        never doubles its separator.
        """
        base = self._config.frontend_url.rstrip("/")
        return f"{base}{RESET_PATH}?token={quote(token, safe='')}"


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------


class TokenValidator:
    """Verifies presented tokens and extracts their claims.

    Both validate_* methods return None on any failure rather than raising,
    so an invalid token reads the same to the caller whatever went wrong.
    """

    def __init__(self, config: TokenConfig) -> None:
        _require_signing_key(config)
        self._config = config

    def validate_reset_token(self, token: str) -> ResetClaims | None:
        """Verify signature and expiry of a reset token. No issuer/audience check."""
        try:
            payload = jwt.decode(
                token,
                self._config.signing_key,
                algorithms=[_ALGORITHM],
                options={"require_exp": True, "leeway": 0, "verify_aud": False, "verify_iss": False},
            )
            return ResetClaims(
                user_id=int(payload[_CLAIM_USER_ID]),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (JWTError, KeyError, TypeError, ValueError):
            logger.debug("Reset token rejected")
            return None

    def validate_session_token(self, token: str) -> SessionClaims | None:
        """Verify signature, expiry, issuer and audience of a session token."""
        try:
            payload = jwt.decode(
                token,
                self._config.signing_key,
                algorithms=[_ALGORITHM],
                audience=self._config.audience,
                issuer=self._config.issuer,
                options={"require_exp": True, "require_sub": True, "require_jti": True, "leeway": 0},
            )
            return SessionClaims(
                email=payload["sub"],
                token_id=payload["jti"],
                is_admin=str(payload[_CLAIM_IS_ADMIN]).lower() == "true",
                user_id=int(payload[_CLAIM_USER_ID]),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (JWTError, KeyError, TypeError, ValueError):
            logger.debug("Session token rejected")
            return None
