"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT access/refresh token issuing and verification via PyJWT
- duration strings ("15m", "1d") for token lifetimes
- token digests used as revocation keys and in logs
"""
from __future__ import annotations

import hashlib
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

ACCESS = "access"
REFRESH = "refresh"
TOKEN_KINDS = (ACCESS, REFRESH)

ph = PasswordHasher()

_DUMMY_HASH: str | None = None

_DURATION_RE = re.compile(r"^\s*(\d+)\s*(ms|s|m|h|d|w|y)?\s*$")
_UNIT_SECONDS = {
    "ms": 0.001,
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 604800,
    "y": 31557600,
}


class TokenError(Exception):
    """Base class for token verification failures."""


class TokenExpired(TokenError):
    pass


class InvalidToken(TokenError):
    pass


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def verify_dummy_password(password: str) -> bool:
    """Run a full argon2 verification against a throwaway hash.

    Used when the email is unknown so that a failed login costs the same
    whether or not the account exists. Always returns False.
    """
    global _DUMMY_HASH
    if _DUMMY_HASH is None:
        _DUMMY_HASH = ph.hash(uuid.uuid4().hex)
    verify_password(password, _DUMMY_HASH)
    return False


def token_digest(token: str) -> str:
    """SHA-256 hex digest of a token string."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def parse_duration(value: str | int) -> timedelta:
    """
    Parse a lifetime like "15m", "24h", "7d" or a bare number of seconds.
    Raises ValueError for anything else.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        seconds = value
    else:
        match = _DURATION_RE.match(str(value))
        if not match:
            raise ValueError(f"Invalid duration: {value!r}")
        amount, unit = match.groups()
        seconds = int(amount) * _UNIT_SECONDS[unit or "s"]
    if seconds <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return timedelta(seconds=seconds)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec:
    """
    Signs and verifies access and refresh tokens.

    Each kind has its own secret and lifetime, so a refresh token never
    verifies as an access token and vice versa. The codec holds no state
    beyond its configuration.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: timedelta,
        refresh_ttl: timedelta,
        algorithm: str = "HS256",
        issuer: str = "repo-tracker-api",
    ):
        if access_secret == refresh_secret:
            raise ValueError("access and refresh tokens must use different secrets")
        self._secrets = {ACCESS: access_secret, REFRESH: refresh_secret}
        self._ttls = {ACCESS: access_ttl, REFRESH: refresh_ttl}
        self.algorithm = algorithm
        self.issuer = issuer

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "TokenCodec":
        return cls(
            access_secret=config["JWT_SECRET"],
            refresh_secret=config["JWT_REFRESH_SECRET"],
            access_ttl=parse_duration(config["JWT_EXPIRES_IN"]),
            refresh_ttl=parse_duration(config["JWT_REFRESH_EXPIRES_IN"]),
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
            issuer=config.get("JWT_ISSUER", "repo-tracker-api"),
        )

    def _check_kind(self, kind: str) -> None:
        if kind not in TOKEN_KINDS:
            raise ValueError(f"Unknown token kind: {kind!r}")

    def expires_in(self, kind: str) -> int:
        self._check_kind(kind)
        return int(self._ttls[kind].total_seconds())

    def issue(self, kind: str, user_id: int) -> str:
        self._check_kind(kind)
        now = _now()
        payload = {
            "iss": self.issuer,
            "id": int(user_id),
            "type": kind,
            "iat": int(now.timestamp()),
            "exp": int((now + self._ttls[kind]).timestamp()),
            "jti": generate_jti(),
        }
        return jwt.encode(payload, self._secrets[kind], algorithm=self.algorithm)

    def verify(self, kind: str, token: str) -> int:
        """
        Decode and validate a token of the given kind and return its user id.
        Raises TokenExpired past expiry and InvalidToken for anything else.
        """
        self._check_kind(kind)
        try:
            decoded = jwt.decode(
                token,
                self._secrets[kind],
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": ["exp", "iat", "id"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpired("Token expired")
        except jwt.InvalidTokenError as exc:
            raise InvalidToken(f"Invalid token: {exc}")

        if decoded.get("type") != kind:
            raise InvalidToken("Wrong token type")
        user_id = decoded.get("id")
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            raise InvalidToken("Invalid subject")
        return user_id
