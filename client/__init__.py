from client.errors import ApiError, AuthenticationError, RequestFailed
from client.session import SessionClient
from client.token_store import TokenStore

__all__ = ["SessionClient", "TokenStore", "ApiError", "AuthenticationError", "RequestFailed"]
