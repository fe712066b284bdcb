"""
Async API client that keeps a user session alive.

Every request carries the stored access token as a bearer header. A 401
triggers one token refresh shared by every request that was already in
flight when it started, including those whose 401 arrives after it settled;
each of them then replays its own request once with the new token.
When the refresh fails the session is cleared and the original 401 is
raised, so the caller can send the user back to the login screen.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from client.errors import ApiError, RequestFailed
from client.token_store import TokenStore

logger = logging.getLogger(__name__)

LOGIN_PATH = "/auth/login"
REGISTER_PATH = "/auth/register"
REFRESH_PATH = "/auth/refresh-token"
LOGOUT_PATH = "/auth/logout"
PROFILE_PATH = "/auth/profile"


class SessionClient:
    def __init__(
        self,
        base_url: str,
        token_store: TokenStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 60.0,
        auth_timeout: float = 15.0,
    ):
        self.tokens = token_store or TokenStore()
        self.auth_timeout = auth_timeout
        self._http = httpx.AsyncClient(
            base_url=base_url,
            transport=transport,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )
        self._refresh_future: asyncio.Future | None = None
        # Bumped each time a refresh settles; _last_refreshed holds its outcome
        self._refresh_epoch = 0
        self._last_refreshed: str | None = None

    async def __aenter__(self) -> "SessionClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    @staticmethod
    def _with_bearer(token: str | None, headers: dict | None) -> dict:
        headers = dict(headers or {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    @staticmethod
    def _checked(response: httpx.Response) -> httpx.Response:
        if response.is_success:
            return response
        raise ApiError.from_response(response)

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return await self._http.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise RequestFailed(f"{method} {url} timed out") from exc
        except httpx.HTTPError as exc:
            raise RequestFailed(f"{method} {url} failed: {exc}") from exc

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Send an authenticated request. Non-401 failures raise ApiError as
        they are; a 401 is retried once after a (shared) token refresh.
        """
        headers = kwargs.pop("headers", None)
        epoch = self._refresh_epoch
        response = await self._send(
            method, url, headers=self._with_bearer(self.tokens.get_token(), headers), **kwargs
        )
        if response.status_code != 401:
            return self._checked(response)

        original = ApiError.from_response(response)
        if self._refresh_future is None and self._refresh_epoch != epoch:
            # A refresh settled while this request was in flight; share its outcome
            new_token = self._last_refreshed
        else:
            new_token = await self._refresh_session()
        if not new_token:
            raise original

        response = await self._send(method, url, headers=self._with_bearer(new_token, headers), **kwargs)
        return self._checked(response)

    async def _refresh_session(self) -> str | None:
        """Join the refresh in flight, or start one. Returns the new access token or None."""
        if self._refresh_future is None:
            future = asyncio.ensure_future(self._do_refresh())
            future.add_done_callback(self._refresh_done)
            self._refresh_future = future
        # shield: a cancelled caller must not cancel the refresh the others wait on
        return await asyncio.shield(self._refresh_future)

    def _refresh_done(self, future: asyncio.Future) -> None:
        if self._refresh_future is not future:
            return
        self._refresh_future = None
        if future.cancelled() or future.exception() is not None:
            self._last_refreshed = None
        else:
            self._last_refreshed = future.result()
        self._refresh_epoch += 1

    async def _do_refresh(self) -> str | None:
        refresh_token = self.tokens.get_refresh_token()
        body = {"refresh_token": refresh_token} if refresh_token else None
        try:
            response = await self._send("POST", REFRESH_PATH, json=body, timeout=self.auth_timeout)
        except RequestFailed as exc:
            logger.warning("session refresh failed: %s", exc)
            self.tokens.clear()
            return None

        if response.status_code != 200:
            logger.info("session refresh rejected (%s); clearing session", response.status_code)
            self.tokens.clear()
            return None

        try:
            data = response.json()
        except ValueError:
            data = None
        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            logger.info("session refresh returned no access token; clearing session")
            self.tokens.clear()
            return None
        self.tokens.save_token(access_token)
        if data.get("refresh_token"):
            self.tokens.save_refresh_token(data["refresh_token"])
        logger.debug("session refreshed")
        return access_token

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def delete(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    async def register(self, name: str, email: str, password: str) -> dict[str, Any]:
        response = await self._send(
            "POST",
            REGISTER_PATH,
            json={"name": name, "email": email, "password": password},
            timeout=self.auth_timeout,
        )
        return self._checked(response).json()

    async def login(self, email: str, password: str) -> dict[str, Any]:
        response = await self._send(
            "POST",
            LOGIN_PATH,
            json={"email": email, "password": password},
            timeout=self.auth_timeout,
        )
        data = self._checked(response).json()
        self.tokens.save_token(data["access_token"])
        self.tokens.save_refresh_token(data.get("refresh_token"))
        return data

    async def logout(self) -> None:
        """Revoke the session server-side; the local session is cleared regardless."""
        refresh_token = self.tokens.get_refresh_token()
        try:
            await self._send(
                "POST",
                LOGOUT_PATH,
                headers=self._with_bearer(self.tokens.get_token(), None),
                json={"refresh_token": refresh_token} if refresh_token else None,
                timeout=self.auth_timeout,
            )
        except RequestFailed as exc:
            logger.warning("logout request failed: %s", exc)
        finally:
            self.tokens.clear()

    async def profile(self) -> dict[str, Any]:
        response = await self.get(PROFILE_PATH)
        return response.json()["data"]

    @property
    def is_authenticated(self) -> bool:
        return self.tokens.get_token() is not None
