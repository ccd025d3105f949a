"""
API gateway: combines the auth, users, and community blueprints under /api.
This is the local entrypoint for development.
"""

from datetime import datetime, timezone
import logging

from flask import Flask, jsonify, Request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from backend.config import GATEWAY_PORT, cors_origins, is_development
from backend.errors import ApiError, ValidationError, server_error

# Basic console logging during API requests
logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(asctime)s - %(message)s")


class ApiRequest(Request):
    """Request whose JSON decoding failures become 400 ValidationErrors."""

    def on_json_loading_failed(self, e):
        if e is None:
            raise ValidationError("Request body must be JSON (Content-Type: application/json)")
        raise ValidationError("Invalid JSON format")


def register_error_handlers(app: Flask) -> None:
    """
    Global fallbacks for anything a route handler did not turn into a response.
    """

    @app.errorhandler(ApiError)
    def handle_api_error(error: ApiError):
        return error.to_response()

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"success": False, "message": "Route not found"}), 404

    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException):
        return jsonify({"success": False, "message": error.description}), error.code

    @app.errorhandler(Exception)
    def unhandled(error: Exception):
        logging.exception(f"Unhandled error: {error}")
        return server_error("Something went wrong", error, is_development()).to_response()


def create_app() -> Flask:
    """
    Application factory for creating the Flask app.

    Returns:
        Flask: The configured Flask application.
    """
    app = Flask(__name__)
    app.request_class = ApiRequest

    CORS(app, resources={
        r"/api/*": {
            "origins": cors_origins(),
            "methods": ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"],
            "supports_credentials": True,
        }
    })

    # --- REGISTER BLUEPRINTS ---
    from backend.auth_service.routes import auth_bp
    from backend.community_service.routes import community_bp
    from backend.users_service.routes import users_bp

    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(users_bp, url_prefix="/api/users")
    app.register_blueprint(community_bp, url_prefix="/api/community")
    logging.info("All blueprints registered successfully.")

    register_error_handlers(app)

    # --- BASIC HEALTH CHECKPOINTS ---
    @app.route("/")
    def ping():
        """
        Root URL for simple 'online' check.
        """
        return jsonify({"message": "Blue Carbon Registry API", "status": "running"}), 200

    @app.route("/api/health")
    def health():
        """
        Liveness probe; no authentication and no database access.
        """
        return jsonify({
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "message": "Blue Carbon Registry backend is running",
        }), 200

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=GATEWAY_PORT, debug=is_development())
