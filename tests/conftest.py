import os
import tempfile
import time
from pathlib import Path

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="asmr-logs-"))

import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from asmr_studio.core.config import (
    MediaConfig,
    PaymentConfig,
    PaymentEnvironment,
    Settings,
    StorageConfig,
    get_settings,
)
from asmr_studio.core.database import Base, SessionLocal, engine
from asmr_studio.models import UserProfile

TEST_USER_ID = "0f8a7c3e-1111-4e4e-9a9a-000000000001"


@pytest.fixture(autouse=True)
async def setup_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    # in-memory db lives on one pooled connection; start each test on a fresh one
    await engine.dispose()


@pytest.fixture
async def db():
    async with SessionLocal() as session:
        yield session


@pytest.fixture
async def user(db):
    profile = UserProfile(id=TEST_USER_ID, email="listener@example.com", full_name="Test Listener", credits=100)
    db.add(profile)
    await db.commit()
    return profile


class FakeStorage:
    """Records uploads instead of talking to R2."""

    def __init__(self, base_url="https://cdn.example.com", fail_on=None):
        self.base_url = base_url
        self.fail_on = fail_on
        self.uploads = []

    async def upload_file(self, file_path, key, content_type):
        from asmr_studio.core.errors import StorageError

        if self.fail_on and self.fail_on in key:
            raise StorageError(f"Failed to upload {key} to R2: boom")
        self.uploads.append((Path(file_path).read_bytes(), key, content_type))
        return f"{self.base_url}/{key}"


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def storage_factory():
    return FakeStorage


@pytest.fixture
def media_config(tmp_path):
    return MediaConfig(temp_dir=tmp_path / "media-temp")


@pytest.fixture
def settings(media_config):
    return Settings(
        payment=PaymentConfig(
            environment=PaymentEnvironment.TEST,
            api_key="creem_test_key_123456",
            payment_url="https://test.creem.io/checkout",
            trial_product_id="prod_trial",
            basic_product_id="prod_basic",
            pro_product_id="prod_pro",
            webhook_secret="",
        ),
        storage=StorageConfig(
            account_id="acc",
            access_key_id="key",
            secret_access_key="secret",
            bucket_name="videos",
            public_endpoint="https://cdn.example.com",
        ),
        media=media_config,
        frontend_url="http://localhost:3000",
        test_mode=True,
    )


def make_token(user_id=TEST_USER_ID, secret="test-jwt-secret", **claims):
    payload = {"sub": user_id, "aud": "authenticated", "exp": int(time.time()) + 600}
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def token_factory():
    return make_token


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def app(settings):
    from asmr_studio.server import app as fastapi_app

    fastapi_app.dependency_overrides[get_settings] = lambda: settings
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac

