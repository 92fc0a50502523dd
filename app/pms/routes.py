from flask import Blueprint, g, redirect, render_template

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return redirect("/dashboard")


@bp.get("/login")
def login_page():
    if getattr(g, "current_user", None):
        return redirect("/dashboard")
    return render_template("login.html")


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for container probes. No DB access, minimal overhead.
    """
    return "ok", 200
