"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond construction
helpers). The directory and service do the work.

Layer rule: may import from core/ only.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.config import Settings


@dataclass
class User:
    """An identity record in the user directory.

    user_id is None until the directory assigns one on insert; it never
    changes afterwards. password holds the plaintext only on a registration
    candidate -- register() replaces it with the bcrypt hash before insert, so
    every stored record carries the hashed form.
    """

    email: str
    password: str
    is_admin: bool = False
    user_id: int | None = None


@dataclass(frozen=True)
class SessionClaims:
    """Claims carried back from a validated session token."""

    email: str
    token_id: str
    is_admin: bool
    user_id: int
    expires_at: datetime


@dataclass(frozen=True)
class ResetClaims:
    """Claims carried back from a validated password-reset token."""

    user_id: int
    expires_at: datetime


@dataclass(frozen=True)
class TokenConfig:
    """Everything the token issuer/validator need, fixed at construction.

    Built once at startup (usually via from_settings()) and passed in
    explicitly -- the token classes never read configuration on their own.
    """

    signing_key: str
    issuer: str
    audience: str
    frontend_url: str
    session_lifetime: timedelta = timedelta(minutes=120)
    reset_lifetime: timedelta = timedelta(minutes=60)

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenConfig:
        return cls(
            signing_key=settings.jwt_key,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            frontend_url=settings.frontend_url,
            session_lifetime=timedelta(minutes=settings.session_token_minutes),
            reset_lifetime=timedelta(minutes=settings.reset_token_minutes),
        )
