"""
auth/service.py -- AuthenticationService: the user-facing auth operations.

Orchestrates UserDirectory (lookups / persistence), CredentialHasher
(hash / verify) and TokenIssuer / TokenValidator (token lifecycle).

Every public operation is a coroutine that suspends only while awaiting the
directory. No locks, no cross-call state, no background work.

Error policy:
  Administrative lookups (get_by_id, get_by_email) raise NotFoundError.
  Authentication checks (verify_credentials, authenticate) return False /
  None -- unknown email and wrong password look identical to the caller, and
  both cost one bcrypt run [C1].
  Registration conflicts raise ConflictError with a generic message that does
  not say what collided.
  A reset token that fails validation for any reason raises InvalidTokenError.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from auth.errors import ConflictError, InvalidTokenError, NotFoundError
from auth.models import TokenConfig, User
from auth.passwords import CredentialHasher
from auth.store import SqlUserDirectory, UserDirectory
from auth.tokens import TokenIssuer, TokenValidator

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("accountauth.auth")


class AuthenticationService:
    """Register, verify, and issue/consume tokens for a user directory.

    Usage:
        service = AuthenticationService(directory, CredentialHasher(), issuer, validator)
        await service.register(User(email="a@x.com", password="secret"))
        ok = await service.verify_credentials("a@x.com", "secret")
    """

    def __init__(
        self,
        directory: UserDirectory,
        hasher: CredentialHasher,
        issuer: TokenIssuer,
        validator: TokenValidator,
    ) -> None:
        self.directory = directory
        self.hasher = hasher
        self.issuer = issuer
        self.validator = validator

    @classmethod
    def from_settings(cls, settings: Settings, directory: UserDirectory | None = None) -> AuthenticationService:
        """Wire a service from Settings. Defaults to a SqlUserDirectory on DATABASE_URL."""
        config = TokenConfig.from_settings(settings)
        return cls(
            directory if directory is not None else SqlUserDirectory(settings.database_url),
            CredentialHasher(rounds=settings.bcrypt_rounds),
            TokenIssuer(config),
            TokenValidator(config),
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_all_users(self) -> list[User]:
        return await self.directory.find_all()

    async def get_by_id(self, user_id: int) -> User:
        user = await self.directory.find(user_id)
        if user is None:
            raise NotFoundError(f"The user with the ID {user_id} was not found.")
        return user

    async def get_by_email(self, email: str) -> User:
        user = await self.directory.find_by_email(email)
        if user is None:
            raise NotFoundError(f"User with email {email} not found.")
        return user

    # ------------------------------------------------------------------
    # Registration and credentials
    # ------------------------------------------------------------------

    async def register(self, candidate: User) -> User:
        """Hash the candidate's password in place and insert the record.

        The find_by_email() check is a pre-check only; the directory's own
        uniqueness constraint settles concurrent registrations and raises
        ConflictError the same way.
        """
        if await self.directory.find_by_email(candidate.email) is not None:
            raise ConflictError("Email not valid.")
        candidate.password = self.hasher.hash(candidate.password)
        user = await self.directory.insert(candidate)
        logger.info("Registered user_id=%s is_admin=%s", user.user_id, user.is_admin)
        return user

    async def verify_credentials(self, email: str, password: str) -> bool:
        """Return True if email exists and password matches its stored hash."""
        user = await self.directory.find_by_email(email)
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            return self.hasher.verify_dummy(password)
        return self.hasher.verify(password, user.password)

    async def authenticate(self, email: str, password: str) -> str | None:
        """Verify credentials and return a session token, or None on failure."""
        user = await self.directory.find_by_email(email)
        if user is None:
            self.hasher.verify_dummy(password)
            return None
        if not self.hasher.verify(password, user.password):
            return None
        return self.issue_session(user)

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def issue_session(self, user: User) -> str:
        """Issue a session token. The caller must already have verified credentials."""
        return self.issuer.issue_session_token(user)

    def request_password_reset(self, user: User) -> tuple[str, str]:
        """Return (reset_token, reset_link) for user.

        Nothing is recorded: possession of the token is the only proof of
        authorization, and it stays valid until it expires.
        """
        token = self.issuer.issue_reset_token(user)
        link = self.issuer.build_reset_link(token)
        logger.info("Issued password reset token for user_id=%s", user.user_id)
        return token, link

    async def complete_password_reset(self, token: str, new_password: str) -> User:
        """Consume a reset token and replace the user's password hash.

        Raises InvalidTokenError if the token is expired, forged or malformed,
        and NotFoundError if the user it names no longer exists.
        """
        claims = self.validator.validate_reset_token(token)
        if claims is None:
            raise InvalidTokenError("Invalid or expired token.")
        user = await self.get_by_id(claims.user_id)
        user.password = self.hasher.hash(new_password)
        await self.directory.update(user)
        logger.info("Password reset completed for user_id=%s", user.user_id)
        return user
