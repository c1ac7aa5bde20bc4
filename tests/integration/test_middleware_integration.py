"""
Integration tests for the middleware stack and error envelope on the real
application.
"""

import pytest
from sqlalchemy.exc import OperationalError

from api.main import app
from database.engine import get_db


class TestHealth:

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": "0.1.0"}

    async def test_ready(self, client):
        response = await client.get("/ready")

        assert response.status_code == 200
        assert response.json() == {"status": "ready"}

    async def test_not_ready_when_database_down(self, client):
        class BrokenSession:
            async def execute(self, *args, **kwargs):
                raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        async def broken_db():
            yield BrokenSession()

        app.dependency_overrides[get_db] = broken_db
        response = await client.get("/ready")

        assert response.status_code == 503
        assert response.json() == {"status": "unavailable"}


class TestRequestId:

    async def test_generated(self, client):
        response = await client.get("/health")
        assert response.headers.get("x-request-id")

    async def test_echoed(self, client):
        response = await client.get("/health", headers={"x-request-id": "req-123"})
        assert response.headers["x-request-id"] == "req-123"

    async def test_present_on_errors(self, client):
        response = await client.get("/api/user/profile")

        assert response.status_code == 401
        assert response.headers.get("x-request-id")


class TestErrorEnvelope:

    async def test_unknown_route(self, client):
        response = await client.get("/api/nowhere")

        assert response.status_code == 404
        assert response.json() == {"MESSAGE": "Not Found", "STATUS": 0, "IS_TOKEN_EXPIRE": 0}

    async def test_bad_path_parameter(self, client):
        response = await client.get("/api/jobs/abc")

        assert response.status_code == 400
        body = response.json()
        assert body["STATUS"] == 0
        assert body["MESSAGE"].startswith("job_id:")

    @pytest.mark.parametrize("body", [
        {"email": 5, "password": "secret123"},
        {"email": "a@jobboard.dev"},
    ])
    async def test_invalid_body(self, client, body):
        response = await client.post("/api/user/login", json=body)

        assert response.status_code == 400
        assert set(response.json()) == {"MESSAGE", "STATUS", "IS_TOKEN_EXPIRE"}

    async def test_success_envelope(self, client):
        response = await client.get("/api/jobs")

        body = response.json()
        assert body["STATUS"] == 1
        assert body["IS_TOKEN_EXPIRE"] == 0
        assert body["MESSAGE"] == "Jobs fetched successfully"
        assert body["RESULT"]["results"] == []


class TestCors:

    async def test_preflight_allows_credentials(self, client):
        response = await client.options(
            "/api/user/refresh-token",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
        assert response.headers["access-control-allow-credentials"] == "true"
