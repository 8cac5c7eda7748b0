import pytest

from medqueue.core.config import settings
from medqueue.core.security import UserRole

# Test data
test_user_data = {
    "email": "test@example.com",
    "password": "TestPassword123",
    "role": "patient",
    "full_name": "Test User",
    "phone_number": "555-0100"
}

test_login_data = {
    "email": "test@example.com",
    "password": "TestPassword123"
}

class TestAuthentication:

    def test_register_user(self, client):
        """Test user registration."""
        response = client.post("/api/v1/auth/register", json=test_user_data)
        assert response.status_code == 201

        data = response.json()
        assert data["email"] == test_user_data["email"]
        assert data["role"] == test_user_data["role"]
        assert "password" not in data
        assert "password_hash" not in data

    def test_register_duplicate_email(self, client):
        """Test registration with duplicate email."""
        client.post("/api/v1/auth/register", json=test_user_data)

        response = client.post("/api/v1/auth/register", json=test_user_data)
        assert response.status_code == 400
        assert "already registered" in response.json()["detail"]

    def test_register_invalid_password(self, client):
        """Test registration with invalid password."""
        invalid_data = test_user_data.copy()
        invalid_data["password"] = "weak"

        response = client.post("/api/v1/auth/register", json=invalid_data)
        assert response.status_code == 422

    def test_register_admin_role_rejected(self, client):
        """Admins cannot self-register."""
        admin_data = test_user_data.copy()
        admin_data["role"] = "admin"

        response = client.post("/api/v1/auth/register", json=admin_data)
        assert response.status_code == 422

    def test_login_success(self, client):
        """Test successful login."""
        client.post("/api/v1/auth/register", json=test_user_data)

        response = client.post("/api/v1/auth/login", json=test_login_data)
        assert response.status_code == 200

        data = response.json()
        assert "access_token" in data
        assert data["token_type"] == "bearer"
        assert data["user"]["email"] == test_user_data["email"]

    def test_login_invalid_credentials(self, client):
        """Test login with unknown email."""
        response = client.post("/api/v1/auth/login", json={
            "email": "nonexistent@example.com",
            "password": "wrongpassword1"
        })
        assert response.status_code == 401

    def test_login_wrong_password(self, client):
        """Test login with wrong password."""
        client.post("/api/v1/auth/register", json=test_user_data)

        wrong_login = test_login_data.copy()
        wrong_login["password"] = "wrongpassword1"

        response = client.post("/api/v1/auth/login", json=wrong_login)
        assert response.status_code == 401

    def test_get_current_user(self, client):
        """Test getting current user info."""
        client.post("/api/v1/auth/register", json=test_user_data)
        login_response = client.post("/api/v1/auth/login", json=test_login_data)

        token = login_response.json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}

        response = client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == 200
        assert response.json()["email"] == test_user_data["email"]

    def test_get_current_user_invalid_token(self, client):
        """Test get current user with invalid token."""
        headers = {"Authorization": "Bearer invalid_token"}

        response = client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == 401

    def test_role_dependency_returns_forbidden_kind(self, client, make_user, auth_headers):
        """Non-admins hitting admin routes get a machine-readable error."""
        patient = make_user(UserRole.PATIENT)

        response = client.get("/api/v1/admin/doctors", headers=auth_headers(patient))
        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"

    def test_rate_limit(self, client, fake_redis, monkeypatch):
        """Login is rejected once the window's budget is spent."""
        monkeypatch.setattr(settings, "RATE_LIMIT_REQUESTS", 2)

        for _ in range(2):
            response = client.post("/api/v1/auth/login", json=test_login_data)
            assert response.status_code == 401

        response = client.post("/api/v1/auth/login", json=test_login_data)
        assert response.status_code == 429
        assert list(fake_redis.ttl.values()) == [settings.RATE_LIMIT_WINDOW_SECONDS]

if __name__ == "__main__":
    pytest.main([__file__])
