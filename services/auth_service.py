"""
Auth service: registration, login, token refresh with rotation, logout and
profile lookup on top of the credential store and the token codec.

Plaintext passwords and token strings never reach the logs; events are
logged with user ids and token digests.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from utils.errors import Conflict, NotFound, Unauthorized
from utils.security import (
    ACCESS,
    REFRESH,
    TokenCodec,
    TokenError,
    hash_password,
    token_digest,
    verify_dummy_password,
    verify_password,
)

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
REFRESH_FAILED = "Failed to refresh token"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    refresh_expires_in: int
    token_type: str = "bearer"

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
        }


class AuthService:
    def __init__(self, storage, codec: TokenCodec):
        self.storage = storage
        self.codec = codec

    def _issue_pair(self, user_id: int) -> TokenPair:
        return TokenPair(
            access_token=self.codec.issue(ACCESS, user_id),
            refresh_token=self.codec.issue(REFRESH, user_id),
            expires_in=self.codec.expires_in(ACCESS),
            refresh_expires_in=self.codec.expires_in(REFRESH),
        )

    def register(self, email: str, password: str, name: str) -> dict:
        """
        Create an account and return its public profile.
        No tokens are issued here; the caller logs in afterwards.
        """
        if self.storage.find_by_email(email):
            raise Conflict("Email already in use")
        # create_user raises Conflict too if a concurrent registration won
        user = self.storage.create_user(email, hash_password(password), name)
        logger.info("auth.register: user=%s", user.id)
        return user.to_public()

    def login(self, email: str, password: str) -> TokenPair:
        user = self.storage.find_by_email(email)
        if user is None:
            verify_dummy_password(password)
            logger.info("auth.login: rejected (unknown account)")
            raise Unauthorized(INVALID_CREDENTIALS)
        if not verify_password(password, user.password_hash):
            logger.info("auth.login: rejected user=%s", user.id)
            raise Unauthorized(INVALID_CREDENTIALS)

        pair = self._issue_pair(user.id)
        logger.info("auth.login: user=%s", user.id)
        return pair

    def refresh(self, refresh_token: str | None) -> TokenPair:
        """
        Exchange a refresh token for a new pair. The presented token is
        revoked in the same step, so each refresh token works exactly once.
        """
        if not refresh_token:
            raise Unauthorized("Refresh token is required")
        try:
            user_id = self.codec.verify(REFRESH, refresh_token)
        except TokenError as exc:
            logger.info("auth.refresh: rejected (%s)", exc)
            raise Unauthorized(REFRESH_FAILED)

        if self.storage.is_revoked(refresh_token):
            logger.warning(
                "auth.refresh: replay of revoked token digest=%s", token_digest(refresh_token)[:12]
            )
            raise Unauthorized(REFRESH_FAILED)

        user = self.storage.find_by_id(user_id)
        if user is None:
            raise Unauthorized(REFRESH_FAILED)

        if not self.storage.record_revocation(refresh_token):
            # Lost the race against a concurrent refresh with the same token
            logger.warning(
                "auth.refresh: concurrent reuse digest=%s", token_digest(refresh_token)[:12]
            )
            raise Unauthorized(REFRESH_FAILED)

        pair = self._issue_pair(user.id)
        logger.info("auth.refresh: user=%s", user.id)
        return pair

    def logout(self, *tokens: str | None) -> bool:
        """Revoke every presented token. Never fails for bad or reused tokens."""
        for token in tokens:
            if token:
                self.storage.record_revocation(token)
        return True

    def get_user_by_id(self, user_id: int) -> dict:
        user = self.storage.find_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        return user.to_public()
