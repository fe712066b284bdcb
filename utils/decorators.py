from __future__ import annotations
from functools import wraps
from flask import current_app, g, request
from utils.errors import Unauthorized
from utils.security import ACCESS, TokenError


def extract_bearer_token() -> str | None:
    """
    Access token from the access cookie, else from `Authorization: Bearer`.
    The cookie wins when both are present.
    """
    token = request.cookies.get(current_app.config["ACCESS_COOKIE_NAME"])
    if token:
        return token
    auth = request.headers.get("Authorization", "")
    scheme, _, value = auth.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


def jwt_required():
    """
    Gate a view on a valid, unrevoked access token for an existing user.
    Sets g.current_user ({id, email, name}) and g.current_token.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = extract_bearer_token()
            if not token:
                raise Unauthorized("Authentication required")

            auth_service = current_app.extensions["auth_service"]
            if auth_service.storage.is_revoked(token):
                raise Unauthorized("Token expired or invalid")

            try:
                user_id = auth_service.codec.verify(ACCESS, token)
            except TokenError:
                raise Unauthorized("Invalid or expired token")

            user = auth_service.storage.find_by_id(user_id)
            if not user:
                raise Unauthorized("User not found")

            g.current_user = user.to_public()
            g.current_token = token
            return fn(*args, **kwargs)

        return wrapper

    return decorator
