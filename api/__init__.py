import logging

from flask import Flask, request
from flasgger import Swagger
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import get_config, validate_config
from .errors import register_error_handlers
from models import storage  # DBStorage singleton (scoped_session)
from services.auth_service import AuthService
from utils.rate_limit import SlidingWindowRateLimiter, check_rate_limit, client_ip
from utils.security import TokenCodec

API_PREFIX = "/api/v1"

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "Repo Tracker API",
        "version": "1.0.0",
        "description": "Accounts and session tokens for saving GitHub repositories to a personal list.",
    },
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logging.getLogger().setLevel(level.upper())


def create_app(config_name: str | None = None, overrides: dict | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    Raises api.config.ConfigError when the configuration is unusable;
    callers must let that stop the process.
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)
    app.config.setdefault("AUTH_URL_PREFIX", f"{API_PREFIX}/auth")
    validate_config(app.config)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    if app.config.get("TRUSTED_PROXY_COUNT"):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=app.config["TRUSTED_PROXY_COUNT"])

    storage.reload(app.config["DATABASE_URL"], echo=app.config.get("SQLALCHEMY_ECHO", False))
    codec = TokenCodec.from_config(app.config)
    app.extensions["auth_service"] = AuthService(storage, codec)

    window = app.config["RATE_LIMIT_WINDOW_SECONDS"]
    app.extensions["rate_limiters"] = {
        "auth": SlidingWindowRateLimiter(app.config["AUTH_RATE_LIMIT"], window),
        "api": SlidingWindowRateLimiter(app.config["API_RATE_LIMIT"], window),
    }

    origins = [o.strip() for o in app.config.get("CORS_ORIGINS", "").split(",") if o.strip()]
    CORS(
        app,
        resources={r"/api/*": {"origins": origins}},
        supports_credentials=True,
        methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    @app.before_request
    def api_rate_limit():
        if request.path.startswith("/api/") and request.method != "OPTIONS":
            check_rate_limit("api", client_ip(request))

    from .health import bp as health_bp
    from .auth import bp as auth_bp

    app.register_blueprint(health_bp, url_prefix=API_PREFIX)
    app.register_blueprint(auth_bp, url_prefix=app.config["AUTH_URL_PREFIX"])

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Repo Tracker API",
            "docs": "/apidocs/",
            "health": f"{API_PREFIX}/health",
        }, 200

    logging.getLogger(__name__).info("App created (env=%s)", app.config.get("APP_ENV"))
    return app
