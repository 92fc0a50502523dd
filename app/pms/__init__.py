import logging
import os
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, g, request, session

from app.pms.auth import bp as auth_bp, load_current_user
from app.pms.composition import FeatureModule, compose_modules
from app.pms.config import DEV_DATABASE_URL, PRODUCTION_ENVS, load_config
from app.pms.db import Database, init_db, teardown_db_session
from app.pms.errors import Forbidden, register_error_handlers
from app.pms.routes import bp as routes_bp
from app.pms.storage import Storage, storage_from_config

logger = logging.getLogger(__name__)


def feature_modules(db: Database, storage: Storage) -> list[FeatureModule]:
    """Every module composed into the running app, shared singletons first."""
    from app.pms.modules.calendar.module import MODULE as calendar_module
    from app.pms.modules.dashboard.module import MODULE as dashboard_module
    from app.pms.modules.file.module import MODULE as file_module
    from app.pms.modules.project.module import MODULE as project_module
    from app.pms.modules.report.module import MODULE as report_module
    from app.pms.modules.sales_pipeline.module import MODULE as sales_pipeline_module
    from app.pms.modules.strategic_brief.module import MODULE as strategic_brief_module
    from app.pms.modules.task.module import MODULE as task_module
    from app.pms.web.module import MODULE as web_module

    return [
        FeatureModule(name="persistence", providers={"db": lambda ctx: db}, exports=("db",)),
        FeatureModule(name="storage", providers={"storage": lambda ctx: storage}, exports=("storage",)),
        calendar_module,
        dashboard_module,
        file_module,
        project_module,
        report_module,
        task_module,
        sales_pipeline_module,
        strategic_brief_module,
        web_module,
    ]


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    from app.pms.security import ensure_csrf_token, validate_csrf

    @app.context_processor
    def _inject_csrf() -> dict:
        return {"csrf_token": ensure_csrf_token()}

    @app.context_processor
    def _inject_user() -> dict:
        return {"current_user": getattr(g, "current_user", None)}

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%d/%m/%Y") -> str:
        if value is None:
            return "-"
        if hasattr(value, "strftime"):
            return value.strftime(format)
        return str(value)

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE") and request.path.startswith("/api/"):
            if request.endpoint == "auth.login":
                return None
            if not validate_csrf(request):
                raise Forbidden("CSRF token missing or invalid.")
        return None

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in PRODUCTION_ENVS:
        db_url = str(app.config.get("DATABASE_URL") or "").strip()
        if not db_url:
            raise RuntimeError("DATABASE_URL is required in production.")
        if db_url == DEV_DATABASE_URL:
            raise RuntimeError("DATABASE_URL must not be the local development default in production.")
        if db_url.startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
    if not app.config.get("DATABASE_URL"):
        raise RuntimeError("DATABASE_URL is not set (the local default applies only when ENV=development).")

    db = init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                db.dispose()
                app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    storage = storage_from_config(app.config)
    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [key for key in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY") if not app.config.get(key)]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))
        else:
            try:
                storage.ensure_bucket()
            except Exception as e:
                app.logger.warning("Storage bucket check failed for '%s': %s", app.config.get("S3_BUCKET"), e)
    app.extensions["pms.storage"] = storage

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    register_error_handlers(app)

    from app.pms.web.providers import compose_providers

    compose_providers(app)
    compose_modules(app, feature_modules(db, storage))

    app.before_request(load_current_user)

    @app.after_request
    def _echo_request_id(response):
        rid = getattr(g, "request_id", None)
        if rid:
            response.headers["X-Request-Id"] = rid
        return response

    app.teardown_appcontext(teardown_db_session)

    logger.info("create_app() complete; app ready to serve")
    return app
