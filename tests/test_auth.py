import pytest
import uuid
from unittest.mock import patch
from datetime import datetime, timedelta
from fastapi import HTTPException
from jose import jwt

from utils.auth import (
    get_password_hash, verify_password, create_access_token, user_from_token,
    get_user_by_email, create_user, UserCreate, get_current_active_user,
    ensure_default_admin
)
from models import User, UserRole, Invitation
from config import settings

class TestPasswordUtils:
    """Test password hashing and verification utilities."""

    def test_password_hashing(self):
        password = "test_password_123"
        hashed = get_password_hash(password)

        assert hashed != password
        assert verify_password(password, hashed) is True
        assert verify_password("wrong_password", hashed) is False

    def test_verify_against_garbage_hash(self):
        assert verify_password("secret", "not-a-hash") is False

class TestTokenUtils:
    """Test JWT token creation and validation."""

    @patch('utils.auth.SECRET_KEY', 'test-secret-key')
    def test_create_access_token(self):
        token = create_access_token({"sub": "user123"})

        assert isinstance(token, str)
        decoded = jwt.decode(token, 'test-secret-key', algorithms=['HS256'])
        assert decoded["sub"] == "user123"

    @patch('utils.auth.SECRET_KEY', 'test-secret-key')
    def test_create_access_token_with_expiration(self):
        token = create_access_token({"sub": "user123"}, timedelta(minutes=30))

        decoded = jwt.decode(token, 'test-secret-key', algorithms=['HS256'])
        assert "exp" in decoded
        assert decoded["exp"] > datetime.utcnow().timestamp()

    @pytest.mark.asyncio
    async def test_user_from_token(self, test_user):
        token = create_access_token({"sub": str(test_user.id)})
        user = await user_from_token(token)
        assert user.id == test_user.id

    @pytest.mark.asyncio
    async def test_user_from_missing_or_invalid_token(self, db):
        with pytest.raises(HTTPException) as exc_info:
            await user_from_token(None)
        assert exc_info.value.status_code == 401

        with pytest.raises(HTTPException) as exc_info:
            await user_from_token("invalid.token.value")
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_expired_token(self, test_user):
        token = create_access_token({"sub": str(test_user.id)}, timedelta(minutes=-5))
        with pytest.raises(HTTPException) as exc_info:
            await user_from_token(token)
        assert exc_info.value.status_code == 401

class TestUserOperations:
    """Test user-related database operations."""

    @pytest.mark.asyncio
    async def test_get_user_by_email_is_case_insensitive(self, test_user):
        found = await get_user_by_email("TestUser@Example.com")
        assert found is not None
        assert found.id == test_user.id
        assert await get_user_by_email("nobody@example.com") is None

    @pytest.mark.asyncio
    async def test_create_user_duplicate_email(self, test_user):
        with pytest.raises(HTTPException) as exc_info:
            await create_user(UserCreate(email="testuser@example.com", password="another123"))
        assert exc_info.value.status_code == 400

    def test_password_too_short(self):
        with pytest.raises(ValueError):
            UserCreate(email="short@example.com", password="12345")

    @pytest.mark.asyncio
    async def test_ensure_default_admin(self, db):
        admin = await ensure_default_admin()
        assert admin is not None
        assert admin.email == settings.DEFAULT_ADMIN_EMAIL.lower()
        assert admin.role == UserRole.ADMIN
        assert verify_password(settings.DEFAULT_ADMIN_PASSWORD, admin.password_hash)

        # Second call is a no-op
        assert await ensure_default_admin() is None
        assert await User.filter(role=UserRole.ADMIN).count() == 1

    @pytest.mark.asyncio
    async def test_get_current_active_user_inactive(self, db):
        user = await User.create(
            id=str(uuid.uuid4()),
            email="inactive@example.com",
            password_hash=get_password_hash("password123"),
            is_active=False
        )
        with pytest.raises(HTTPException) as exc_info:
            await get_current_active_user(user)
        assert exc_info.value.status_code == 403

class TestAuthEndpoints:
    """Login, profile, password and invitation registration endpoints."""

    @pytest.mark.asyncio
    async def test_login_success(self, test_client, test_user):
        response = await test_client.post(
            "/api/auth/login",
            json={"email": "testuser@example.com", "password": "testpassword123"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"]
        assert data["user"]["email"] == "testuser@example.com"
        assert data["user"]["role"] == "user"

        refreshed = await User.get(id=test_user.id)
        assert refreshed.last_login is not None

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, test_client, test_user):
        response = await test_client.post(
            "/api/auth/login",
            json={"email": "testuser@example.com", "password": "wrongpassword"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_login_nonexistent_user(self, test_client):
        response = await test_client.post(
            "/api/auth/login",
            json={"email": "nobody@example.com", "password": "whatever1"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_login_inactive_user(self, test_client, test_user):
        test_user.is_active = False
        await test_user.save()
        response = await test_client.post(
            "/api/auth/login",
            json={"email": "testuser@example.com", "password": "testpassword123"}
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_me(self, test_client, test_user, auth_headers):
        response = await test_client.get("/api/auth/me", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["email"] == test_user.email
        assert data["name"] == "Test User"
        assert data["is_active"] is True

    @pytest.mark.asyncio
    async def test_me_unauthorized(self, test_client):
        response = await test_client.get("/api/auth/me")
        assert response.status_code == 401

        response = await test_client.get("/api/auth/me", headers={"Authorization": "Bearer invalid"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_change_password(self, test_client, test_user, auth_headers):
        response = await test_client.post(
            "/api/auth/change-password",
            json={"current_password": "testpassword123", "new_password": "newsecret1"},
            headers=auth_headers
        )
        assert response.status_code == 200

        refreshed = await User.get(id=test_user.id)
        assert verify_password("newsecret1", refreshed.password_hash)

    @pytest.mark.asyncio
    async def test_change_password_wrong_current(self, test_client, auth_headers):
        response = await test_client.post(
            "/api/auth/change-password",
            json={"current_password": "wrong", "new_password": "newsecret1"},
            headers=auth_headers
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_change_password_too_short(self, test_client, auth_headers):
        response = await test_client.post(
            "/api/auth/change-password",
            json={"current_password": "testpassword123", "new_password": "123"},
            headers=auth_headers
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_register_with_invitation(self, test_client, admin_user):
        await Invitation.create(
            token="invite-token",
            email="neu@example.com",
            role=UserRole.USER,
            invited_by=admin_user,
            expires_at=datetime.utcnow() + timedelta(days=7),
        )

        response = await test_client.get("/api/auth/verify-invite/invite-token")
        assert response.status_code == 200
        assert response.json() == {"valid": True, "email": "neu@example.com", "role": "user"}

        response = await test_client.post(
            "/api/auth/register",
            json={"token": "invite-token", "name": "Neue Person", "password": "secret12"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["user"]["email"] == "neu@example.com"
        assert data["user"]["name"] == "Neue Person"

        invitation = await Invitation.get(token="invite-token")
        assert invitation.used_at is not None

        # The token cannot be used twice
        response = await test_client.post(
            "/api/auth/register",
            json={"token": "invite-token", "name": "Noch Jemand", "password": "secret12"}
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_register_with_expired_invitation(self, test_client, admin_user):
        await Invitation.create(
            token="old-token",
            email="alt@example.com",
            invited_by=admin_user,
            expires_at=datetime.utcnow() - timedelta(days=1),
        )
        response = await test_client.get("/api/auth/verify-invite/old-token")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_verify_unknown_invitation(self, test_client):
        response = await test_client.get("/api/auth/verify-invite/does-not-exist")
        assert response.status_code == 404
