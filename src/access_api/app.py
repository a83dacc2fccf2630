"""
Factory for the Secure Access API service (REST).

Serves every resource under /api and authenticates with bearer JWTs.
"""

from __future__ import annotations

from flask import Flask, jsonify
from flask_cors import CORS

from access_api.routes.api import api_bp
from access_api.routes.api.health import health_payload
from access_core.config import load_config, read_bool, validate_required_env_vars
from access_core.constants import MAX_PHOTO_BYTES
from access_core.db import init_db, init_engine
from access_core.error_handlers import register_error_handlers
from access_core.jwt_middleware import init_jwt_middleware
from access_core.logging_config import configure_logging
from access_core.models import Base
from access_core.serializers import success_response


def create_app() -> Flask:
    # Validate all required environment variables (fail-fast)
    validate_required_env_vars()

    app = Flask(__name__)
    config = load_config("access-api")

    configure_logging(config.app_name, config.log_level)

    # Database
    init_engine(config)
    init_db(Base.metadata)

    # Basic Config
    app.config["SECRET_KEY"] = config.secret_key
    app.config["APP_NAME"] = "Secure Access API"
    app.config["ENVIRONMENT"] = config.environment
    app.config["IS_PRODUCTION"] = config.is_production
    app.config["DEBUG_MODE"] = config.debug_mode
    app.config["TRUST_PROXY_HEADERS"] = config.trust_proxy_headers
    app.config["TESTING"] = read_bool("TESTING", "false")
    app.config["FRONTEND_URL"] = config.frontend_url
    app.config["AWS_REGION"] = config.aws_region
    app.config["MAX_CONTENT_LENGTH"] = MAX_PHOTO_BYTES

    # JWT
    app.config["JWT_REFRESH_SECRET"] = config.jwt_refresh_secret
    app.config["JWT_ACCESS_TOKEN_EXPIRES_HOURS"] = config.jwt_access_token_expires_hours
    app.config["JWT_REFRESH_TOKEN_EXPIRES_DAYS"] = config.jwt_refresh_token_expires_days

    init_jwt_middleware(app)

    # Every resource lives under /api
    app.register_blueprint(api_bp, url_prefix="/api")

    register_error_handlers(app)

    CORS(app, resources={r"/api/*": {"origins": config.cors_origins or "*"}})

    @app.get("/health")
    def health():
        return jsonify(health_payload()), 200

    @app.get("/api/docs")
    def docs():
        routes = [
            {
                "path": rule.rule,
                "methods": sorted(rule.methods - {"HEAD", "OPTIONS"}),
                "endpoint": rule.endpoint,
            }
            for rule in app.url_map.iter_rules()
            if rule.endpoint != "static"
        ]
        routes.sort(key=lambda route: route["path"])
        return jsonify(success_response({"name": app.config["APP_NAME"], "routes": routes}))

    app.logger.info(f"{config.app_name} started in {config.environment} mode")
    return app
