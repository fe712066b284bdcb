"""
Authentication blueprint:
- POST     /auth/register
- POST     /auth/login
- GET/POST /auth/refresh-token
- GET/POST /auth/logout
- GET      /auth/profile

The implementation:
- Uses argon2 for password hashing (via utils.security)
- Issues short-lived access tokens and longer-lived refresh tokens (JWTs
  signed with separate secrets)
- Rotates refresh tokens: each one is revoked when it is exchanged
- Logout appends the presented tokens to the revocation list
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, g, current_app

from models.schemas.user import UserCreateSchema, UserLoginSchema, RefreshTokenSchema, UserOutSchema
from services.auth_service import AuthService, TokenPair
from utils.decorators import extract_bearer_token, jwt_required
from utils.rate_limit import rate_limited

bp = Blueprint("auth", __name__, url_prefix="/auth")

user_create_schema = UserCreateSchema()
user_login_schema = UserLoginSchema()
refresh_token_schema = RefreshTokenSchema()
user_out_schema = UserOutSchema()


def _auth_service() -> AuthService:
    return current_app.extensions["auth_service"]


def _refresh_cookie_path() -> str:
    # Refresh cookie only travels to the auth endpoints
    return current_app.config.get("AUTH_URL_PREFIX", "/api/v1/auth")


def _set_auth_cookies(response, pair: TokenPair):
    if not current_app.config.get("AUTH_COOKIES"):
        return response
    cookie_opts = {
        "httponly": True,
        "secure": current_app.config.get("COOKIE_SECURE", True),
        "samesite": "Strict",
    }
    response.set_cookie(
        current_app.config["ACCESS_COOKIE_NAME"],
        pair.access_token,
        max_age=pair.expires_in,
        path="/",
        **cookie_opts,
    )
    response.set_cookie(
        current_app.config["REFRESH_COOKIE_NAME"],
        pair.refresh_token,
        max_age=pair.refresh_expires_in,
        path=_refresh_cookie_path(),
        **cookie_opts,
    )
    return response


def _clear_auth_cookies(response):
    response.delete_cookie(current_app.config["ACCESS_COOKIE_NAME"], path="/")
    response.delete_cookie(current_app.config["REFRESH_COOKIE_NAME"], path=_refresh_cookie_path())
    return response


def _presented_refresh_token() -> str | None:
    """Refresh token from the refresh cookie, else the JSON body, else the bearer header."""
    token = request.cookies.get(current_app.config["REFRESH_COOKIE_NAME"])
    if token:
        return token
    if request.is_json:
        payload = refresh_token_schema.load(request.get_json(silent=True) or {})
        if payload.get("refresh_token"):
            return payload["refresh_token"]
    auth = request.headers.get("Authorization", "")
    scheme, _, value = auth.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


@bp.post("/register")
def register():
    """
    Register a new user. Tokens are not issued; log in afterwards.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [name, email, password]
          properties:
            name: { type: string }
            email: { type: string }
            password: { type: string }
    responses:
      201:
        description: Created
      400:
        description: Validation error, or email already in use (error CONFLICT)
    """
    payload = request.get_json(silent=True) or {}
    data = user_create_schema.load(payload)

    profile = _auth_service().register(data["email"], data["password"], data["name"])

    return jsonify(
        {
            "success": True,
            "message": "User registered successfully.",
            "data": user_out_schema.dump(profile),
        }
    ), 201


@bp.post("/login")
@rate_limited("auth")
def login():
    """
    Login: return access_token and refresh_token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Invalid credentials
      429:
        description: Too many requests
    """
    payload = request.get_json(silent=True) or {}
    data = user_login_schema.load(payload)

    pair = _auth_service().login(data["email"], data["password"])

    response = jsonify(pair.to_dict())
    return _set_auth_cookies(response, pair), 200


@bp.route("/refresh-token", methods=["GET", "POST"])
@rate_limited("auth")
def refresh_token():
    """
    Exchange a refresh token for a new token pair (rotation).
    The refresh token is read from the refresh cookie, the JSON body
    ({"refresh_token": "<token>"}) or the Authorization header, in that order.
    ---
    tags:
      - Auth
    responses:
      200:
        description: OK (returns new tokens)
      401:
        description: Invalid, expired or revoked refresh token
    """
    pair = _auth_service().refresh(_presented_refresh_token())

    response = jsonify(pair.to_dict())
    return _set_auth_cookies(response, pair), 200


@bp.route("/logout", methods=["GET", "POST"])
def logout():
    """
    logout: revokes the presented access and refresh tokens
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Always succeeds
    """
    refresh = request.cookies.get(current_app.config["REFRESH_COOKIE_NAME"])
    payload = request.get_json(silent=True) if request.is_json else None
    if not refresh and isinstance(payload, dict) and isinstance(payload.get("refresh_token"), str):
        refresh = payload["refresh_token"]

    _auth_service().logout(extract_bearer_token(), refresh)

    response = jsonify({"success": True, "message": "Logged out successfully"})
    return _clear_auth_cookies(response), 200


@bp.get("/profile")
@jwt_required()
def profile():
    """
    Get current user info.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    user = _auth_service().get_user_by_id(g.current_user["id"])
    return jsonify(
        {
            "success": True,
            "data": user_out_schema.dump(user),
        }
    ), 200
