"""RFC 7807 Problem Details helpers."""
from __future__ import annotations

import logging
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .domain_errors import DomainError

logger = logging.getLogger(__name__)

PROBLEM_TYPE_BASE = "https://api.task-manager.local/problems"


def _problem_response(*, status: int, code: str, detail: str, details: dict | None = None) -> JSONResponse:
    try:
        title = HTTPStatus(status).phrase
    except ValueError:
        title = "Domain Error"

    payload: dict[str, object] = {
        "type": f"{PROBLEM_TYPE_BASE}/{code.lower()}",
        "title": title,
        "status": status,
        "detail": detail,
        "code": code,
    }
    if details is not None:
        payload["details"] = details

    return JSONResponse(
        status_code=status,
        content=payload,
        media_type="application/problem+json",
    )


def build_problem_details_response(exc: DomainError) -> JSONResponse:
    """Render DomainError as RFC 7807 payload with stable domain code."""
    return _problem_response(
        status=exc.http_status,
        code=exc.code,
        detail=exc.message,
        details=exc.details,
    )


def register_problem_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def domain_error_handler(_request: Request, exc: DomainError) -> JSONResponse:
        return build_problem_details_response(exc)

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.exception("Database error on %s %s", request.method, request.url.path)
        return _problem_response(
            status=500,
            code="DATABASE_ERROR",
            detail="Database operation failed",
        )
