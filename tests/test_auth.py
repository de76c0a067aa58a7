"""
Tests for authentication endpoints: registration and login.
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_register_user(client: AsyncClient):
    """Successful registration returns the new student profile."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "new@example.com",
        "full_name": "New Resident",
        "gender": "Female",
        "password": "securepassword123",
    })
    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "new@example.com"
    assert data["role"] == "student"
    assert "hashed_password" not in data  # Never expose password hash


@pytest.mark.asyncio
async def test_register_cannot_choose_role(client: AsyncClient):
    """Self-registration always yields a student, whatever the body says."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "sneaky@example.com",
        "password": "securepassword123",
        "role": "proprietor",
    })
    assert response.status_code == 201
    assert response.json()["role"] == "student"


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, student):
    """Duplicate email returns 409."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "student@example.com",
        "password": "securepassword123",
    })
    assert response.status_code == 409
    assert response.json()["code"] == "EMAIL_ALREADY_REGISTERED"


@pytest.mark.asyncio
async def test_register_weak_password(client: AsyncClient):
    """Password under 8 chars returns 422."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "weak@example.com",
        "password": "short",
    })
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_login_success(client: AsyncClient, student):
    """Valid credentials return JWT token."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "student@example.com",
        "password": "testpassword123",
    })
    assert response.status_code == 200
    data = response.json()
    assert "access_token" in data
    assert data["token_type"] == "bearer"

    bookings = await client.get(
        "/api/v1/bookings/", headers={"Authorization": f"Bearer {data['access_token']}"}
    )
    assert bookings.status_code == 200
    assert bookings.json() == []


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, student):
    """Wrong password returns 401."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "student@example.com",
        "password": "wrongpassword",
    })
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_nonexistent_email(client: AsyncClient):
    """Non-existent email returns 401."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "nobody@example.com",
        "password": "anypassword123",
    })
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_inactive_profile(client: AsyncClient, db_session, student):
    """Deactivated profiles cannot log in."""
    student.is_active = False
    await db_session.commit()
    response = await client.post("/api/v1/auth/login", json={
        "email": "student@example.com",
        "password": "testpassword123",
    })
    assert response.status_code == 403
