from __future__ import annotations


class TokenStore:
    """In-memory home for the session's access and refresh tokens."""

    def __init__(self, access_token: str | None = None, refresh_token: str | None = None):
        self._access_token = access_token
        self._refresh_token = refresh_token

    def get_token(self) -> str | None:
        return self._access_token

    def save_token(self, token: str) -> None:
        self._access_token = token

    def get_refresh_token(self) -> str | None:
        return self._refresh_token

    def save_refresh_token(self, token: str | None) -> None:
        self._refresh_token = token

    def clear(self) -> None:
        self._access_token = None
        self._refresh_token = None
