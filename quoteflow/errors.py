"""
quoteflow/errors.py

Application error types and HTTP error handlers.

Routes convert ValidationError into a flashed message + redirect (the user-facing alert).
Anything that escapes a route is rendered by the handlers registered here:
HTML pages for browsers, JSON for clients that ask for JSON.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from flask import jsonify, render_template, request
from werkzeug.exceptions import HTTPException

from .extensions import db
from .logging_setup import current_request_id

logger = logging.getLogger(__name__)


class AppError(Exception):
    default_code = "system_error"
    default_message = "Não foi possível concluir a operação."
    default_http_status = 500

    def __init__(
        self,
        message: str | None = None,
        code: str | None = None,
        http_status: int | None = None,
        payload: Dict[str, Any] | None = None,
    ) -> None:
        self.message = (message or self.default_message).strip()
        self.code = (code or self.default_code).strip()
        self.http_status = int(http_status or self.default_http_status)
        self.payload = dict(payload or {})
        super().__init__(self.message)

    def to_response_payload(self, request_id: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.code,
            "message": self.message,
            "request_id": request_id,
        }
        if self.payload:
            payload.update(self.payload)
        return payload


class ValidationError(AppError):
    default_code = "validation_error"
    default_message = "Dados inválidos."
    default_http_status = 400


class PermissionDenied(AppError):
    default_code = "permission_denied"
    default_message = "Acesso negado."
    default_http_status = 403


class NotFound(AppError):
    default_code = "not_found"
    default_message = "Registro não encontrado."
    default_http_status = 404


class IntegrationError(AppError):
    default_code = "integration_error"
    default_message = "Serviço externo indisponível."
    default_http_status = 502


_HTTP_MESSAGES = {
    403: "Acesso negado.",
    404: "Página não encontrada.",
    500: "Erro inesperado.",
}


def _wants_json() -> bool:
    if request.is_json:
        return True
    accept = request.accept_mimetypes
    return accept.accept_json and not accept.accept_html


def _render_error(status: int, message: str, code: str):
    request_id = current_request_id(default="n/a")
    if _wants_json():
        return jsonify({"error": code, "message": message, "request_id": request_id}), status
    return (
        render_template("errors/error.html", status=status, message=message, request_id=request_id),
        status,
    )


def register_error_handlers(app) -> None:
    @app.errorhandler(AppError)
    def _handle_app_error(exc: AppError):
        if exc.http_status >= 500:
            logger.error("app error %s: %s", exc.code, exc.message)
        request_id = current_request_id(default="n/a")
        if _wants_json():
            return jsonify(exc.to_response_payload(request_id)), exc.http_status
        return (
            render_template("errors/error.html", status=exc.http_status, message=exc.message, request_id=request_id),
            exc.http_status,
        )

    @app.errorhandler(HTTPException)
    def _handle_http_error(exc: HTTPException):
        status = exc.code or 500
        message = _HTTP_MESSAGES.get(status, exc.description or exc.name)
        return _render_error(status, message, code=exc.name.lower().replace(" ", "_"))

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        db.session.rollback()
        logger.exception("unhandled error")
        return _render_error(500, _HTTP_MESSAGES[500], code="system_error")
