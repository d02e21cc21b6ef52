from __future__ import annotations

from typing import Any

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException


class APIError(Exception):
    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code or self.default_code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code


class NotFound(APIError):
    """A folder, file, user or share token does not exist (or is not visible)."""

    status_code = 404
    default_code = "NOT_FOUND"


class Unauthorized(APIError):
    """The caller's effective permission is below what the operation needs."""

    status_code = 403
    default_code = "FORBIDDEN"


class Conflict(APIError):
    status_code = 409
    default_code = "CONFLICT"


class ValidationError(APIError):
    status_code = 400
    default_code = "INVALID_PARAMETER"


class StorageFailure(APIError):
    """The relational store failed; the enclosing transaction was rolled back."""

    status_code = 500
    default_code = "STORAGE_FAILURE"


class BlobFailure(APIError):
    """The blob backend failed to store, read or delete an object."""

    status_code = 502
    default_code = "BLOB_FAILURE"


def error_payload(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details or {},
        }
    }


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(APIError)
    def handle_api_error(error: APIError):  # type: ignore[no-untyped-def]
        if error.status_code >= 500:
            app.logger.error("%s: %s", error.code, error.message)
        return jsonify(error_payload(error.code, error.message, error.details)), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):  # type: ignore[no-untyped-def]
        return (
            jsonify(error_payload("HTTP_ERROR", error.description, {"status": error.code})),
            error.code or 500,
        )

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):  # type: ignore[no-untyped-def]
        app.logger.exception("Unhandled exception", exc_info=error)
        return jsonify(error_payload("INTERNAL_ERROR", "An unexpected error occurred.")), 500
