from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import ProductionConfig, get_config, check_production_secrets
from .errors import register_error_handlers
from models import storage  # DBStorage singleton (scoped_session)
from utils.sessions import init_auth

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "Clinic Auth API",
        "version": "1.0.0",
        "description": "Authentication, session lifecycle and account administration for the clinic backend.",
    },
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "CookieAuth": {
            "type": "apiKey",
            "name": "accessToken",
            "in": "cookie",
            "description": "HTTP-only access token cookie set by /auth/login, /auth/register and /auth/refresh.",
        }
    },
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

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
}


def create_app(config_name: str | None = None, reset_notifier=None) -> Flask:
    """
    Application factory: creates and configures the Flask app.

    ``reset_notifier`` is called with (user, token) whenever a password-reset
    token is issued; delivery (email, SMS) lives outside this service.
    """
    app = Flask(__name__)

    config_cls = get_config(config_name)
    app.config.from_object(config_cls)
    if config_cls is ProductionConfig:
        check_production_secrets(app.config)

    # Credentials travel in cookies, so CORS must allow them for the frontend origin
    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS")}}, supports_credentials=True)

    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    register_error_handlers(app)

    # Codec, registry, issuer and rotation engine, built once from config
    init_auth(app, reset_notifier=reset_notifier)

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .admin import bp as admin_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")
    app.register_blueprint(admin_bp, url_prefix="/api/v1/admin")

    @app.after_request
    def add_security_headers(response):
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        if app.config.get("COOKIE_SECURE"):
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to the Clinic Auth API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
