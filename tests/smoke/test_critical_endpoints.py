"""
Smoke tests for critical endpoints.

Fast tests to detect critical breaks in CI/CD pipeline.
Target: <10 seconds total execution time.
"""

import pytest
from httpx import AsyncClient

from tests.factories.user import DEFAULT_PASSWORD


@pytest.mark.smoke
@pytest.mark.asyncio
class TestCriticalEndpoints:
    """Smoke tests for critical application endpoints."""

    async def test_root(self, client: AsyncClient):
        response = await client.get("/")

        assert response.status_code == 200
        assert "message" in response.json()

    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    async def test_login_endpoint(self, client: AsyncClient, user):
        response = await client.post("/api/auth/login", json={"email": user.email, "password": DEFAULT_PASSWORD})

        assert response.status_code == 200
        assert "access_token" in response.json()

    async def test_me_endpoint(self, client: AsyncClient, auth_headers):
        response = await client.get("/api/auth/me", headers=auth_headers)

        assert response.status_code == 200

    async def test_protected_endpoint_rejects_anonymous(self, client: AsyncClient):
        response = await client.get("/api/user-groups/")

        assert response.status_code == 401

    async def test_openapi_schema(self, client: AsyncClient):
        response = await client.get("/openapi.json")

        assert response.status_code == 200
        assert "/api/user-groups/" in response.json()["paths"]
