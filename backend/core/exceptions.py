# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Exception taxonomy for the auth core.

Hashing and parsing raise these for malformed input; the routers translate
the remaining conditions into HTTP responses with deliberately generic
messages so callers cannot tell *why* a credential or link was rejected.
"""


class AuthError(Exception):
    """Base class for every auth-core error."""


class InvalidInput(AuthError, ValueError):
    """Malformed credential or token at the boundary (e.g. empty password)."""


class InvalidHashFormat(AuthError, ValueError):
    """Stored password hash is not a well-formed pbkdf2_sha256 record."""


class InvalidIterations(InvalidHashFormat):
    """Stored password hash carries a non-numeric or non-positive round count."""


class AuthenticationFailure(AuthError):
    """Wrong password, unknown account or missing session."""


class AuthorizationFailure(AuthError):
    """Authenticated, but the user lacks the required permission."""


class TokenExpiredOrUsed(AuthError):
    """Single-use token is unknown, expired or already consumed."""
