"""
auth/errors.py -- Error taxonomy for the auth core.

Every error carries an ErrorKind so callers at any layer (CLI, a future HTTP
adapter) can branch on the kind without matching on exception classes or
message text.

  NOT_FOUND      -- administrative lookup by id/email found nothing.
  CONFLICT       -- email already registered (pre-check or directory constraint).
  CONFIGURATION  -- signing key missing/empty. Fatal; never retried.
  INVALID_TOKEN  -- reset token expired, forged, or malformed. Deliberately one
                    undifferentiated category.

Authentication checks (verify_credentials, token validation) never raise
these -- they return False / None so the failure mode is not revealed.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    CONFIGURATION = "configuration"
    INVALID_TOKEN = "invalid_token"


class AuthError(Exception):
    """Base class for all errors raised by the auth core."""

    kind: ErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(AuthError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(AuthError):
    kind = ErrorKind.CONFLICT


class ConfigurationError(AuthError):
    kind = ErrorKind.CONFIGURATION


class InvalidTokenError(AuthError):
    kind = ErrorKind.INVALID_TOKEN
