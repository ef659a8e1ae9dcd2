"""
auth/passwords.py -- Password hashing and verification.

Security design decisions:
  bcrypt directly (no passlib wrapper). Its cost factor makes brute force
      expensive and every record embeds its own random salt, so rainbow tables
      are useless. The cost is configurable (BCRYPT_ROUNDS) so tests can run
      at the minimum of 4.

  Pre-hashing: bcrypt only reads the first 72 bytes of its input and newer
      releases reject longer passwords outright. The password is first
      reduced to base64(SHA-256(password)) -- 44 printable bytes -- so every
      password, of any length or byte content, hashes and verifies.

  verify() returns False on a mismatch and raises CryptoError only when the
      stored record cannot be parsed. A corrupt record is an operator problem,
      not a wrong password, and must not be reported as one.

Layer rule: no imports from api/. No I/O.
"""

from __future__ import annotations

import base64
import hashlib

import bcrypt

from core.result import CryptoError

DEFAULT_ROUNDS = 12


def _prehash(password: bytes | str) -> bytes:
    if isinstance(password, str):
        password = password.encode("utf-8")
    return base64.b64encode(hashlib.sha256(password).digest())


class PasswordHasher:
    """Salted, slow, one-way password hashing.

    Usage:
        hasher = PasswordHasher(rounds=12)
        record = hasher.hash(b"secret")
        hasher.verify(b"secret", record)   # True
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self.rounds = rounds

    def generate_salt(self) -> bytes:
        """Return a fresh random bcrypt salt at the configured cost."""
        return bcrypt.gensalt(rounds=self.rounds)

    def hash(self, password: bytes | str, salt: bytes | None = None) -> str:
        """Return the bcrypt record for password.

        Deterministic for a given salt; a fresh salt is drawn when none is passed.
        """
        if salt is None:
            salt = self.generate_salt()
        return bcrypt.hashpw(_prehash(password), salt).decode("ascii")

    def verify(self, password: bytes | str, hash_record: str) -> bool:
        """Return True if password matches hash_record (constant-time compare)."""
        try:
            record = hash_record.encode("ascii")
        except (AttributeError, UnicodeEncodeError) as exc:
            raise CryptoError("Stored password hash is not a valid bcrypt record") from exc
        try:
            return bcrypt.checkpw(_prehash(password), record)
        except ValueError as exc:
            raise CryptoError("Stored password hash is not a valid bcrypt record") from exc
