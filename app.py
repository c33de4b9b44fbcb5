import os
import time
import uuid

from flask import Flask, g, jsonify, request

import db
import models  # noqa: F401  (registers the six tables on Base.metadata)
from api.blueprint import create_api_blueprint
from api.schemas.api_responses import fail
from config import Config, configure_logging
from logging_utils import configure_app_logging, get_logger

REQUEST_ID_HEADER = "X-Request-ID"


def init_db() -> None:
    """Initialize DB schema.

    Kept out of default startup path to minimize app spin-up time.
    """

    db.Base.metadata.create_all(bind=db.engine)


def create_app() -> Flask:
    app = Flask(__name__)

    # Defaults from settings.py, then environment overrides.
    app.config.from_pyfile("settings.py")
    app.config.from_object(Config)

    # Configure unified app logging (UTC timestamps, per-file logs, daily rotation)
    configure_app_logging(app.config.get("LOG_LEVEL", "INFO"))
    logger = get_logger(__name__)

    configure_logging(app.logger, app.config.get("LOG_LEVEL", "INFO"))

    # --- request ids + slow request logging (default threshold 250ms) ---
    # SLOW_REQUEST_MS=0 disables the slow-request warning.
    slow_ms = int(os.getenv("SLOW_REQUEST_MS", "250") or "250")

    @app.before_request
    def _start_request():
        # A caller-supplied id wins over a generated one.
        incoming = (request.headers.get(REQUEST_ID_HEADER) or "").strip()[:64]
        g.request_id = incoming or uuid.uuid4().hex
        request.environ["_req_start_ns"] = time.perf_counter_ns()

    @app.after_request
    def _finish_request(resp):
        request_id = g.get("request_id")
        if request_id:
            resp.headers[REQUEST_ID_HEADER] = request_id

        start_ns = request.environ.get("_req_start_ns")
        if slow_ms <= 0 or not start_ns:
            return resp

        elapsed_ms = (time.perf_counter_ns() - int(start_ns)) / 1_000_000.0
        if elapsed_ms >= slow_ms:
            # Keep it compact and stable for grepping.
            logger.warning(
                "SLOW_REQUEST ms=%.1f status=%s method=%s path=%s query=%s request_id=%s",
                elapsed_ms,
                getattr(resp, "status_code", "?"),
                request.method,
                request.path,
                request.query_string.decode("utf-8", errors="replace"),
                request_id,
            )
        return resp

    app.register_blueprint(
        create_api_blueprint(enable_v2=app.config.get("ENABLE_V2", True))
    )

    # Error handlers
    @app.errorhandler(404)
    def not_found(_err):
        return jsonify(fail(f"No route for {request.path}", code="not_found")), 404

    @app.errorhandler(405)
    def method_not_allowed(_err):
        return (
            jsonify(fail(f"{request.method} not allowed on {request.path}", code="method_not_allowed")),
            405,
        )

    @app.errorhandler(500)
    def server_error(_err):
        logger.exception("Unhandled server error")
        return jsonify(fail("Internal server error", code="internal_error")), 500

    # Optional: initialize tables on startup only when explicitly requested.
    if os.getenv("INIT_DB_ON_STARTUP", "0") == "1":
        logger.info("INIT_DB_ON_STARTUP=1; initializing database schema")
        init_db()

    return app


# NOTE: Do not instantiate the Flask app at import time.
# Tests patch the DB engine/sessionmaker before calling create_app().
app: Flask | None = None


if __name__ == "__main__":
    app = create_app()
    get_logger(__name__).info("Starting Flask app")
    app.run(debug=True, use_reloader=False)
