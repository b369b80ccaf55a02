import logging
from datetime import timedelta

from flask import Flask, g, jsonify, request
from dotenv import load_dotenv
from sqlalchemy import inspect as sa_inspect

from app.qdms.config import load_config
from app.qdms.db import init_db, teardown_db_session
from app.qdms.engine import build_engine
from app.qdms.errors import DomainError
from app.qdms.logging_config import configure_logging
from app.qdms.routes import bp as routes_bp
from app.qdms.auth import bp as auth_bp, load_current_user
from app.qdms.admin import bp as admin_bp
from app.qdms.modules.document_control.admin import bp as doc_control_bp
from app.qdms.modules.signatures.admin import bp as signatures_bp
from app.qdms.modules.workflows.admin import bp as workflows_bp

logger = logging.getLogger(__name__)

EXPECTED_TABLES = (
    "users",
    "roles",
    "permissions",
    "audit_events",
    "document_types",
    "documents",
    "document_versions",
    "workflow_templates",
    "workflow_template_steps",
    "workflow_runs",
    "workflow_steps",
    "electronic_signatures",
)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=app.config["SESSION_LIFETIME_HOURS"])
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    configure_logging(app)

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        import os

        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.extensions["qdms_engine"] = build_engine()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(admin_bp, url_prefix="/api")
    app.register_blueprint(doc_control_bp, url_prefix="/api")
    app.register_blueprint(signatures_bp, url_prefix="/api")
    app.register_blueprint(workflows_bp, url_prefix="/api")

    def _load_user_wrapper():
        if request.path.startswith(("/health", "/healthz")):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)
    app.teardown_appcontext(teardown_db_session)

    # Schema health: log loudly when migrations have not been applied.
    try:
        insp = sa_inspect(app.extensions["sqlalchemy_engine"])
        missing = [t for t in EXPECTED_TABLES if not insp.has_table(t)]
        if missing:
            app.logger.warning("DB schema out of date; run `alembic upgrade head`. Missing: %s", ", ".join(missing))
    except Exception as e:
        app.logger.exception("Schema health check failed: %s", e)

    @app.errorhandler(DomainError)
    def _err_domain(e: DomainError):  # type: ignore[no-redef]
        app.logger.warning(
            "%s on %s %s: %s", type(e).__name__, request.method, request.path, e
        )
        return jsonify(e.to_payload()), e.status_code

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        return jsonify({"error": "Not found."}), 404

    @app.errorhandler(405)
    def _err_405(e):  # type: ignore[no-redef]
        return jsonify({"error": "Method not allowed."}), 405

    @app.errorhandler(413)
    def _err_413(e):  # type: ignore[no-redef]
        return jsonify({"error": "Request body too large."}), 413

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return jsonify({"error": "Internal server error."}), 500

    logger.info("create_app() complete; app ready to serve")

    return app
