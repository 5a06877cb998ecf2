# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Central security module.  All cryptographic primitives live here.  No other
module should touch raw crypto directly.

Responsibilities
----------------
1. Password hashing / verification          (PBKDF2-HMAC-SHA256 via passlib)
2. Random tokens and identifiers            (secrets / uuid4)
3. Client metadata for the audit trail      (IP address, user agent)
"""

import secrets
import uuid
from typing import Optional

from fastapi import Request
from passlib.crypto.digest import pbkdf2_hmac

from core.config import settings
from core.exceptions import InvalidHashFormat, InvalidInput, InvalidIterations

# ---------------------------------------------------------------------------
# 1.  pbkdf2_sha256 – password hashing
# ---------------------------------------------------------------------------
# Record format:  pbkdf2_sha256$<iterations>$<salt hex>$<derived key hex>
#
# The record is self-describing: verification reads the round count and salt
# from the record itself, so raising ``password_hash_iterations`` later never
# invalidates existing hashes.  The salt enters the KDF as its hex text, which
# keeps records written by the previous dashboard verifiable.
# ---------------------------------------------------------------------------

HASH_ALGORITHM = "pbkdf2_sha256"
SALT_BYTES = 16   # 128-bit salt
KEY_BYTES = 32    # 256-bit derived key


def _derive(password: str, salt: str, iterations: int, keylen: int) -> bytes:
    return pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt.encode("utf-8"),
        iterations,
        keylen,
    )


def _constant_time_equals(a: bytes, b: bytes) -> bool:
    """XOR-accumulate over every byte; no early exit on the first difference."""
    if len(a) != len(b):
        return False
    diff = 0
    for x, y in zip(a, b):
        diff |= x ^ y
    return diff == 0


def hash_password(plain: str, iterations: Optional[int] = None) -> str:
    """
    Hash a plaintext password with PBKDF2-SHA256 and a fresh random salt.

    Two calls with the same password never return the same record.

    Raises
    ------
    InvalidInput   if *plain* is empty.
    """
    if not plain:
        raise InvalidInput("Password cannot be empty")

    rounds = iterations or settings.password_hash_iterations
    salt = secrets.token_hex(SALT_BYTES)
    derived = _derive(plain, salt, rounds, KEY_BYTES)
    return f"{HASH_ALGORITHM}${rounds}${salt}${derived.hex()}"


def verify_password(plain: str, stored_hash: str) -> bool:
    """
    Check *plain* against a record produced by :func:`hash_password`.

    Returns False on a mismatch.  Raises ``InvalidHashFormat`` when the record
    is malformed and ``InvalidIterations`` when its round count is not a
    positive integer; both mean the stored data is corrupt, not that the user
    typed the wrong password.
    """
    parts = stored_hash.split("$") if stored_hash else []
    if len(parts) != 4 or parts[0] != HASH_ALGORITHM:
        raise InvalidHashFormat(f"Invalid hash format: expected {HASH_ALGORITHM}$...")

    _, iterations_str, salt, expected_hex = parts

    try:
        iterations = int(iterations_str)
    except ValueError:
        raise InvalidIterations("Invalid iterations in hash") from None
    if iterations <= 0:
        raise InvalidIterations("Invalid iterations in hash")

    if not salt:
        raise InvalidHashFormat("Invalid hash format: empty salt")
    try:
        expected = bytes.fromhex(expected_hex)
    except ValueError:
        raise InvalidHashFormat("Invalid hash format: digest is not hex") from None
    if len(expected) != KEY_BYTES:
        raise InvalidHashFormat(f"Invalid hash format: digest must be {KEY_BYTES} bytes")

    actual = _derive(plain, salt, iterations, KEY_BYTES)
    return _constant_time_equals(actual, expected)


# ---------------------------------------------------------------------------
# 2.  Tokens
# ---------------------------------------------------------------------------
# Session cookies, email-verification links and password-reset links all draw
# from the OS CSPRNG.  Expiry and single-use rules are applied by the caller.


def generate_token() -> str:
    """Return 32 random bytes as 64 hex characters."""
    return secrets.token_hex(32)


def generate_uuid() -> str:
    """Return a random (version 4) UUID string."""
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# 3.  Client metadata
# ---------------------------------------------------------------------------


def get_client_ip(request: Request) -> Optional[str]:
    """
    Extract the client IP address from the request.
    Checks X-Forwarded-For header first (for proxies), then falls back to client host.
    Returns None when neither is available.
    """
    # X-Forwarded-For can contain multiple IPs, take the first (original client)
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()[:45]

    if request.client:
        return request.client.host

    return None


def get_user_agent(request: Request) -> Optional[str]:
    ua = request.headers.get("User-Agent")
    return ua[:512] if ua else None
