from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from app.domain_errors import DomainError, conflict, not_found
from app.problem_details import build_problem_details_response, register_problem_handlers


def test_problem_details_payload_contains_stable_code_and_rfc7807_fields() -> None:
    response = build_problem_details_response(
        DomainError(
            code="PROBE_ERROR",
            http_status=409,
            message="probe failed",
            details={"probe": True},
        )
    )

    assert response.status_code == 409
    assert response.media_type == "application/problem+json"

    body = response.body.decode("utf-8")
    assert '"type":"https://api.task-manager.local/problems/probe_error"' in body
    assert '"title":"Conflict"' in body
    assert '"status":409' in body
    assert '"detail":"probe failed"' in body
    assert '"code":"PROBE_ERROR"' in body
    assert '"details":{"probe":true}' in body


def test_problem_details_omits_details_when_none() -> None:
    response = build_problem_details_response(
        DomainError(
            code="NO_DETAILS",
            http_status=422,
            message="validation failed",
            details=None,
        )
    )

    body = response.body.decode("utf-8")
    assert response.status_code == 422
    assert '"code":"NO_DETAILS"' in body
    assert '"details"' not in body


def test_error_helpers_build_expected_codes() -> None:
    missing = not_found("task", 42)
    assert (missing.code, missing.http_status, missing.message) == ("TASK_NOT_FOUND", 404, "Task not found")
    assert missing.details == {"id": 42}

    duplicate = conflict("EMAIL_ALREADY_EXISTS", "Email already exists", email="a@b.co")
    assert duplicate.http_status == 409
    assert duplicate.details == {"email": "a@b.co"}
    assert conflict("X", "y").details is None


def test_registered_handlers_map_domain_and_database_errors() -> None:
    app = FastAPI()
    register_problem_handlers(app)

    @app.get("/boom")
    def _boom():
        raise DomainError(
            code="ROUTE_PROBLEM",
            http_status=409,
            message="route failed",
            details={"source": "test"},
        )

    @app.get("/db-down")
    def _db_down():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    client = TestClient(app)

    response = client.get("/boom")
    assert response.status_code == 409
    assert response.headers["content-type"].startswith("application/problem+json")
    payload = response.json()
    assert payload["code"] == "ROUTE_PROBLEM"
    assert payload["detail"] == "route failed"

    response = client.get("/db-down")
    assert response.status_code == 500
    assert response.json()["code"] == "DATABASE_ERROR"
