"""Initialize the Flask app and its Firebase clients."""

import json
import os

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials
from flask import Flask, current_app, g, request
from werkzeug.middleware.proxy_fix import ProxyFix

from .core.constants import (
    COMPETITIONS_ACCESS_CLAIM,
    DEFAULT_FUNCTIONS_REGION,
    DEFAULT_FUNCTIONS_TIMEOUT,
    VIEW_IDLE_TIMEOUT,
    VIEW_LOAD_TIMEOUT,
    VOTE_CONFIRMATION_TIMEOUT,
)


def _float_env(name, default):
    value = os.environ.get(name)
    return float(value) if value else default


def _bearer_token():
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _load_credentials(app):
    """Return (credential, project id) from the env, a local file or ADC."""
    cred_json = os.environ.get("FIREBASE_CREDENTIALS_JSON")
    if cred_json:
        try:
            cred_info = json.loads(cred_json)
            return credentials.Certificate(cred_info), cred_info.get("project_id")
        except ValueError as e:
            app.logger.error(f"Error parsing FIREBASE_CREDENTIALS_JSON: {e}")

    cred_path = os.path.join(
        os.path.dirname(os.path.dirname(__file__)), "firebase_credentials.json"
    )
    if os.path.exists(cred_path):
        try:
            with open(cred_path, "r") as f:
                cred_info = json.load(f)
            return credentials.Certificate(cred_path), cred_info.get("project_id")
        except ValueError as e:
            app.logger.error(f"Error loading credentials from {cred_path}: {e}")

    try:
        return credentials.ApplicationDefault(), app.config["FIREBASE_PROJECT_ID"]
    except Exception as e:
        app.logger.error(f"No usable Firebase credentials: {e}")
        return None, None


def _init_firebase(app):
    cred, project_id = _load_credentials(app)
    if project_id and not app.config["FIREBASE_PROJECT_ID"]:
        app.config["FIREBASE_PROJECT_ID"] = project_id
    if cred is None or firebase_admin._apps:
        return
    options = {"projectId": project_id} if project_id else {}
    try:
        firebase_admin.initialize_app(cred, options)
    except ValueError:
        app.logger.info("Firebase app already initialized.")


def create_app(test_config=None):
    """Create and configure an instance of the Flask application."""
    app = Flask(__name__, instance_relative_config=True)

    # Load configuration
    app.config.from_mapping(
        SECRET_KEY=os.environ.get("SECRET_KEY") or "dev",
        FIREBASE_PROJECT_ID=os.environ.get("FIREBASE_PROJECT_ID"),
        FUNCTIONS_REGION=os.environ.get("FUNCTIONS_REGION") or DEFAULT_FUNCTIONS_REGION,
        FUNCTIONS_BASE_URL=os.environ.get("FUNCTIONS_BASE_URL"),
        FUNCTIONS_TIMEOUT=_float_env("FUNCTIONS_TIMEOUT", DEFAULT_FUNCTIONS_TIMEOUT),
        VOTE_CONFIRMATION_TIMEOUT=_float_env(
            "VOTE_CONFIRMATION_TIMEOUT", VOTE_CONFIRMATION_TIMEOUT
        ),
        VIEW_LOAD_TIMEOUT=_float_env("VIEW_LOAD_TIMEOUT", VIEW_LOAD_TIMEOUT),
        VIEW_IDLE_TIMEOUT=_float_env("VIEW_IDLE_TIMEOUT", VIEW_IDLE_TIMEOUT),
    )

    if test_config:
        app.config.update(test_config)

    if not app.config.get("TESTING"):
        _init_firebase(app)

    # Register blueprints
    from . import auth as auth_bp

    app.register_blueprint(auth_bp.bp)

    from . import ceremony as ceremony_bp

    app.register_blueprint(ceremony_bp.bp)

    from . import competition as competition_bp

    app.register_blueprint(competition_bp.bp)

    from . import user as user_bp

    app.register_blueprint(user_bp.bp)

    from . import error_handlers

    app.register_blueprint(error_handlers.error_handlers_bp)

    @app.before_request
    def load_logged_in_user():
        """If the request carries a valid ID token, store the caller in g."""
        from . import context  # noqa: PLC0415

        context.sweep_idle_views()
        g.user = None
        id_token = _bearer_token()
        if id_token is None:
            return

        try:
            decoded_token = firebase_auth.verify_id_token(id_token)
        except Exception as e:
            current_app.logger.warning(f"Rejected ID token: {e}")
            return

        uid = decoded_token["uid"]
        g.user = {
            "uid": uid,
            "email": decoded_token.get("email"),
            "name": decoded_token.get("name"),
            "competitions_access": decoded_token.get(COMPETITIONS_ACCESS_CLAIM) is True,
            "token": decoded_token,
        }
        context.remember_token(uid, id_token)

    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    return app
