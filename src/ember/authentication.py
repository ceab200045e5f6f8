"""Credential helpers for authenticator models."""

from __future__ import annotations

import asyncio
import secrets

from argon2 import PasswordHasher as Argon2Hasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

ACCESS_TOKEN_BYTES = 32


class PasswordHasher:
    """Async wrapper around argon2 hashing and verification.

    Hashing runs in a worker thread so the event loop keeps serving other
    requests while a password is derived.
    """

    def __init__(self, *, time_cost: int = 3, memory_cost: int = 65_536, parallelism: int = 4) -> None:
        self.time_cost = time_cost
        self.memory_cost = memory_cost
        self.parallelism = parallelism
        self._hasher = Argon2Hasher(time_cost=time_cost, memory_cost=memory_cost, parallelism=parallelism)

    async def hash(self, password: str) -> str:
        return await asyncio.to_thread(self._hasher.hash, password)

    async def verify(self, expected: str, password: str) -> bool:
        if not expected or not password:
            return False
        try:
            return await asyncio.to_thread(self._hasher.verify, expected, password)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False


def generate_access_token() -> str:
    """Return a fresh opaque token stored in the session field ``at``."""

    return secrets.token_urlsafe(ACCESS_TOKEN_BYTES)


__all__ = ["ACCESS_TOKEN_BYTES", "PasswordHasher", "generate_access_token"]
