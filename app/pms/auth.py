from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, request, session
from werkzeug.security import check_password_hash

from app.pms.audit import record_event
from app.pms.db import db_session
from app.pms.errors import ApiError, Unauthorized
from app.pms.models import User
from app.pms.rbac import current_user
from app.pms.security import ensure_csrf_token
from app.pms.validation import Dto, validate_json

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds

PUBLIC_PREFIXES = ("/static/", "/health", "/healthz")


class TooManyAttempts(ApiError):
    status_code = 429
    code = "too_many_attempts"


class LoginDto(Dto):
    email: str
    password: str


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


def user_out(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.display_name,
        "roles": sorted(r.key for r in user.roles),
        "permissions": sorted({p.key for r in user.roles for p in r.permissions}),
    }


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a per-request request_id (inbound X-Request-Id or a fresh one) for log/audit correlation.
    """
    if not getattr(g, "request_id", None):
        g.request_id = (request.headers.get("X-Request-Id") or "").strip()[:64] or uuid.uuid4().hex
    if request.path.startswith(PUBLIC_PREFIXES):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    s = db_session()
    user = s.get(User, int(user_id))
    if not user or not user.is_active:
        session.pop("user_id", None)
        g.current_user = None
        return
    g.current_user = user


@bp.post("/login")
@validate_json(LoginDto)
def login(body: LoginDto):
    email = body.email.strip().lower()
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        raise TooManyAttempts("Too many login attempts. Please wait 5 minutes.")

    _record_attempt(ip)

    s = db_session()
    user = s.query(User).filter(User.email == email).one_or_none()
    if not user or not user.is_active or not check_password_hash(user.password_hash, body.password):
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=email,
            reason="Invalid credentials",
            metadata={"email": email},
        )
        s.commit()
        current_app.logger.info("Login failed (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        raise Unauthorized("Invalid credentials.")

    session["user_id"] = user.id
    session.permanent = True
    _login_attempts[ip].clear()
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    return {"user": user_out(user), "csrfToken": ensure_csrf_token()}


@bp.post("/logout")
def logout():
    s = db_session()
    user = getattr(g, "current_user", None)
    if user:
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    session.pop("user_id", None)
    return {"success": True}


@bp.get("/me")
def me():
    return {"user": user_out(current_user()), "csrfToken": ensure_csrf_token()}
