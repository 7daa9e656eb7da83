"""Integration tests for auth endpoints."""
import pytest


@pytest.mark.asyncio
class TestAuthMe:
    """Tests for GET /auth/me endpoint."""

    async def test_me_success(self, app_client, make_user):
        """Test the token's user is returned with their role."""
        user_id, headers = await make_user("Alice", role="developer")

        response = await app_client.get("/auth/me", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == user_id
        assert data["email"] == "alice@example.com"
        assert data["role"] == "developer"

    async def test_me_without_token(self, app_client):
        """Test missing credentials return 401."""
        response = await app_client.get("/auth/me")

        assert response.status_code == 401
        assert response.json()["detail"] == "Not authenticated"

    async def test_me_invalid_token(self, app_client):
        """Test a garbage token returns 401."""
        response = await app_client.get(
            "/auth/me",
            headers={"Authorization": "Bearer invalid.token.here"},
        )

        assert response.status_code == 401

    async def test_me_deleted_user(self, app_client, make_user, test_db):
        """Test a valid token for a removed user returns 401."""
        user_id, headers = await make_user("Ghost")
        await test_db["users"].delete_many({})

        response = await app_client.get("/auth/me", headers=headers)

        assert response.status_code == 401


@pytest.mark.asyncio
class TestHealth:
    """Tests for the liveness endpoints."""

    async def test_root(self, app_client):
        """Test the root endpoint."""
        response = await app_client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    async def test_health(self, app_client):
        """Test the health endpoint."""
        response = await app_client.get("/health")

        assert response.json() == {"status": "healthy"}
