"""
tests/conftest.py -- Shared fixtures for the auth core tests.

This module provides:
  - token_config: TokenConfig with a fixed 64-char signing key
  - hasher: CredentialHasher at bcrypt's minimum cost (4) to keep tests fast
  - issuer / validator: token classes built from token_config
  - directory: fresh InMemoryUserDirectory per test
  - sql_directory: SqlUserDirectory on a throwaway SQLite file under tmp_path
  - service: AuthenticationService wired to the in-memory directory

SqlUserDirectory runs its queries through asyncio.to_thread, so a plain
':memory:' URL would hand each worker thread a blank database. A file under
tmp_path is shared by every connection and removed with the test.
"""

from __future__ import annotations

from collections.abc import Generator

import pytest

from auth.models import TokenConfig
from auth.passwords import CredentialHasher
from auth.service import AuthenticationService
from auth.store import InMemoryUserDirectory, SqlUserDirectory
from auth.tokens import TokenIssuer, TokenValidator

TEST_KEY = "k" * 64


@pytest.fixture
def token_config() -> TokenConfig:
    return TokenConfig(
        signing_key=TEST_KEY,
        issuer="accountauth-test",
        audience="accountauth-test-clients",
        frontend_url="https://app.example.com",
    )


@pytest.fixture(scope="session")
def hasher() -> CredentialHasher:
    return CredentialHasher(rounds=4)


@pytest.fixture
def issuer(token_config: TokenConfig) -> TokenIssuer:
    return TokenIssuer(token_config)


@pytest.fixture
def validator(token_config: TokenConfig) -> TokenValidator:
    return TokenValidator(token_config)


@pytest.fixture
def directory() -> InMemoryUserDirectory:
    return InMemoryUserDirectory()


@pytest.fixture
def sql_directory(tmp_path) -> Generator[SqlUserDirectory, None, None]:
    d = SqlUserDirectory(f"sqlite:///{tmp_path / 'auth.db'}")
    yield d
    d.close()


@pytest.fixture
def service(directory, hasher, issuer, validator) -> AuthenticationService:
    return AuthenticationService(directory, hasher, issuer, validator)
