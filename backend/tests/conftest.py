"""
Pytest configuration and fixtures for the backend tests.
"""
import os
import tempfile

# Settings are read at import time, so the environment goes first
os.environ.setdefault("ACCESS_TOKEN_SECRET", "test-access-secret")
os.environ.setdefault("REFRESH_TOKEN_SECRET", "test-refresh-secret")
os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")
os.environ.setdefault("MONGO_DB", "videotube_test")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="videotube-logs-"))
os.environ.setdefault("LOG_LEVEL", "INFO")
os.environ.setdefault("UPLOAD_TEMP_DIR", tempfile.mkdtemp(prefix="videotube-uploads-"))

import pytest
from typing import AsyncGenerator
from unittest.mock import patch
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient
from faker import Faker

from main import app
import db.mongodb as mongodb
from db.mongodb import ensure_indexes

# Initialize Faker for test data generation
fake = Faker()

USERS_URL = "/api/v1/users"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture
async def mongo_db():
    """In-memory MongoDB wired in place of the real client."""
    client = AsyncMongoMockClient()
    db = client["videotube_test"]
    await ensure_indexes(db)
    with patch.object(mongodb, "_mongo_db", db):
        yield db


@pytest.fixture
async def async_client(mongo_db) -> AsyncGenerator[AsyncClient, None]:
    """Async test client talking to the app in-process."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def cloudinary_upload():
    """Patch the Cloudinary SDK call; each upload gets a distinct url."""
    def _fake_upload(local_path, **kwargs):
        name = os.path.basename(local_path)
        return {
            "url": f"http://res.cloudinary.com/demo/image/upload/{name}",
            "secure_url": f"https://res.cloudinary.com/demo/image/upload/{name}",
            "public_id": name,
        }

    with patch("cloudinary.uploader.upload", side_effect=_fake_upload) as mocked:
        yield mocked


@pytest.fixture
def sample_user_data():
    """Registration form fields."""
    return {
        "fullName": fake.name(),
        "email": fake.unique.email(),
        "username": fake.unique.user_name(),
        "password": "testpassword123",
    }


def image_files(avatar: bool = True, cover: bool = False):
    files = {}
    if avatar:
        files["avatar"] = ("avatar.png", PNG_BYTES, "image/png")
    if cover:
        files["coverImage"] = ("cover.png", PNG_BYTES, "image/png")
    return files


def cookies_from(response) -> dict:
    """Name -> raw Set-Cookie header for every cookie the response sets."""
    return {
        header.split("=", 1)[0]: header
        for header in response.headers.get_list("set-cookie")
    }


async def register(client: AsyncClient, data: dict, cover: bool = False):
    return await client.post(f"{USERS_URL}/register", data=data, files=image_files(cover=cover))


async def login(client: AsyncClient, data: dict):
    response = await client.post(
        f"{USERS_URL}/login",
        json={"email": data["email"], "password": data["password"]},
    )
    # Secure cookies are never replayed over http; keep the jar empty anyway
    client.cookies.clear()
    return response


@pytest.fixture
async def registered_user(async_client, cloudinary_upload, sample_user_data):
    response = await register(async_client, sample_user_data)
    assert response.status_code == 201
    return {**sample_user_data, "id": response.json()["data"]["_id"]}


@pytest.fixture
async def auth_headers(async_client, registered_user):
    response = await login(async_client, registered_user)
    assert response.status_code == 200
    token = response.json()["data"]["accessToken"]
    return {"Authorization": f"Bearer {token}"}
