from __future__ import annotations

from typing import Any

from flask import Flask, g, jsonify
from werkzeug.exceptions import HTTPException


class ApiError(Exception):
    """Base error for the JSON API. Raised from services and controllers, rendered by the app handler."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None, errors: list[dict] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.errors = errors or []

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        if self.errors:
            body["errors"] = self.errors
        return body


class BadRequest(ApiError):
    status_code = 400
    code = "bad_request"


class Unauthorized(ApiError):
    status_code = 401
    code = "unauthorized"


class Forbidden(ApiError):
    status_code = 403
    code = "forbidden"


class NotFound(ApiError):
    status_code = 404
    code = "not_found"


class Conflict(ApiError):
    status_code = 409
    code = "conflict"


class ValidationFailed(ApiError):
    status_code = 422
    code = "validation_failed"


def _body(code: str, message: str) -> dict[str, Any]:
    return {"error": code, "message": message, "requestId": getattr(g, "request_id", None)}


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _api_error(e: ApiError):
        body = e.to_dict()
        body["requestId"] = getattr(g, "request_id", None)
        if e.status_code >= 500:
            app.logger.error("%s (request_id=%s): %s", e.code, body["requestId"], e.message)
        elif e.status_code == 403:
            app.logger.warning(
                "Forbidden: missing_permission=%s request_id=%s", getattr(g, "missing_permission", None), body["requestId"]
            )
        return jsonify(body), e.status_code

    @app.errorhandler(404)
    def _err_404(e):
        return jsonify(_body("not_found", "Resource not found.")), 404

    @app.errorhandler(405)
    def _err_405(e):
        return jsonify(_body("method_not_allowed", "Method not allowed.")), 405

    @app.errorhandler(413)
    def _err_413(e):
        limit = app.config.get("MAX_UPLOAD_MB", 50)
        return jsonify(_body("payload_too_large", f"File too large. Maximum size is {limit}MB.")), 413

    @app.errorhandler(500)
    def _err_500(e):
        # Ensure stack trace shows in logs.
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return jsonify(_body("internal_error", "Internal server error.")), 500

    @app.errorhandler(HTTPException)
    def _err_http(e: HTTPException):
        return jsonify(_body((e.name or "error").lower().replace(" ", "_"), e.description or "")), e.code or 500
