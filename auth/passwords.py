"""
auth/passwords.py -- Password hashing and verification (bcrypt).

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

bcrypt only reads the first 72 bytes of its input (5.x raises ValueError past
that, 4.x silently truncates). Every plaintext is therefore pre-hashed to
base64(SHA-256(utf-8 bytes)) -- 44 ASCII bytes -- before it reaches bcrypt,
the same construction as passlib's bcrypt_sha256. Any length works and two
passwords sharing a 72-byte prefix still hash differently.

Output is the modular-crypt string "$2b$<cost>$<22-char salt><31-char hash>",
so the algorithm, cost factor and salt all travel with the stored value.
verify() reads them back from there.

Layer rule: stdlib + bcrypt only.
"""

from __future__ import annotations

import base64
import hashlib

import bcrypt

DEFAULT_ROUNDS = 12


def _prehash(plain: str) -> bytes:
    return base64.b64encode(hashlib.sha256(plain.encode("utf-8")).digest())


class CredentialHasher:
    """One-way salted adaptive hashing of plaintext passwords.

    rounds is the bcrypt log2 cost factor. Raising it makes every hash (and
    every brute-force guess) proportionally slower; existing hashes keep the
    cost they were created with.
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self.rounds = rounds
        # Timing equalization dummy hash. Checked against when a login names a
        # user that does not exist, so that path costs one full bcrypt run too.
        self._dummy_hash = self.hash("accountauth_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of plain with a fresh random salt."""
        return bcrypt.hashpw(_prehash(plain), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if plain matches hashed. Any malformed input returns False."""
        try:
            return bcrypt.checkpw(_prehash(plain), hashed.encode("utf-8"))
        except Exception:
            return False

    def verify_dummy(self, plain: str) -> bool:
        """Burn one bcrypt check against the dummy hash. Always returns False."""
        self.verify(plain, self._dummy_hash)
        return False
