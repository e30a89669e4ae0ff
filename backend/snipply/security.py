"""
Snipply Backend — Password Hashing
====================================

What:  bcrypt hashing and verification for account passwords.
How:   bcrypt is CPU-bound by design, so both calls run in Starlette's
       thread pool to keep the event loop responsive.

Work factor comes from BCRYPT_ROUNDS (10 by default, 4 in tests).
"""

import logging

import bcrypt
from starlette.concurrency import run_in_threadpool

from snipply.config import settings

logger = logging.getLogger(__name__)

# bcrypt rejects (or silently truncates, depending on version) longer inputs
MAX_PASSWORD_BYTES = 72


def _hash(password: str, rounds: int) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds)).decode("utf-8")


def _verify(password: str, password_hash: str) -> bool:
    secret = password.encode("utf-8")
    if len(secret) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(secret, password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        logger.warning("Password check against a malformed hash")
        return False


async def hash_password(password: str) -> str:
    """
    Hash a password with a fresh salt.

    Raises:
        ValueError: password longer than 72 bytes (registration validates
        this first, so it only fires for internal callers).
    """
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return await run_in_threadpool(_hash, password, settings.bcrypt_rounds)


async def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time comparison; False for over-long passwords and malformed hashes."""
    return await run_in_threadpool(_verify, password, password_hash)
