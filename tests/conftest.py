import io
import json
import os
import tempfile
import uuid

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image

# IMPORTANT:
# Set env vars BEFORE importing app.core.config/app.main (pydantic settings load at import time)
_MEDIA_ROOT = tempfile.mkdtemp(prefix="classifieds-media-")

os.environ["ENV"] = "test"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_classifieds.db")
os.environ.setdefault("SESSION_SECRET", "dev-test-secret")
os.environ.setdefault("CORS_ORIGINS", "http://localhost:3000")
os.environ["ADS_DIR"] = os.path.join(_MEDIA_ROOT, "ads")
os.environ["AVATARS_DIR"] = os.path.join(_MEDIA_ROOT, "avatars")

from app.main import app as fastapi_app  # noqa: E402
from app.core.config import settings  # noqa: E402
from app.db.base_class import Base  # noqa: E402
import app.db.base  # noqa: F401,E402  (register models)
from app.db.session import engine, AsyncSessionLocal, get_db_session  # noqa: E402


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture(scope="session")
async def _create_test_schema(anyio_backend):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(_create_test_schema):
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
async def client(db_session):
    """
    Overrides app.db.session.get_db_session so every request in a test
    shares the test's session.
    """

    async def _override_get_db_session():
        yield db_session

    fastapi_app.dependency_overrides[get_db_session] = _override_get_db_session

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    fastapi_app.dependency_overrides.pop(get_db_session, None)


# --- Small helpers ---

def _unique(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:10]}"


@pytest.fixture
def unique_str():
    return _unique


@pytest.fixture
def ads_dir():
    return settings.ads_dir


@pytest.fixture
def avatars_dir():
    return settings.avatars_dir


def _make_image(width: int = 200, height: int = 100, fmt: str = "PNG", color=(200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def make_image():
    return _make_image


@pytest.fixture
def user_factory(unique_str):
    async def _create(
        client: AsyncClient,
        *,
        username: str | None = None,
        password: str = "SuperSecret123",
        first_name: str = "Test",
        last_name: str = "User",
        phone: str = "+7 000 000-00-00",
    ):
        username = username or f"{unique_str('user')}@example.com"
        r = await client.post(
            "/register",
            json={
                "username": username,
                "password": password,
                "firstName": first_name,
                "lastName": last_name,
                "phone": phone,
            },
        )
        assert r.status_code == 201, r.text
        return {
            "username": username,
            "password": password,
            "first_name": first_name,
            "last_name": last_name,
            "phone": phone,
        }

    return _create


@pytest.fixture
def login_helper():
    async def _login(client: AsyncClient, *, username: str, password: str):
        client.cookies.clear()
        r = await client.post("/login", json={"username": username, "password": password})
        assert r.status_code == 200, r.text
        token = client.cookies.get("SESSION")
        assert token, "Login did not set SESSION cookie"
        return token

    return _login


@pytest.fixture
def authed_user(user_factory, login_helper):
    async def _create(client: AsyncClient, **kwargs):
        user = await user_factory(client, **kwargs)
        token = await login_helper(client, username=user["username"], password=user["password"])
        user["token"] = token
        me = await client.get("/users/me")
        assert me.status_code == 200, me.text
        user["id"] = me.json()["id"]
        return user

    return _create


@pytest.fixture
def set_session_cookie():
    def _set(client: AsyncClient, token: str | None):
        client.cookies.clear()
        if token:
            client.cookies.set("SESSION", token)

    return _set


@pytest.fixture
def make_admin(db_session):
    async def _promote(username: str):
        from app.models.user import Role
        from app.services.auth import get_user_by_username

        user = await get_user_by_username(db_session, username)
        assert user is not None
        user.role = Role.ADMIN
        await db_session.commit()

    return _promote


@pytest.fixture
def ad_factory(make_image):
    async def _create(
        client: AsyncClient,
        *,
        title: str = "Bike",
        price: int = 100,
        description: str = "Barely used",
        image: bytes | None = None,
        filename: str = "bike.png",
    ):
        r = await client.post(
            "/ads",
            data={"properties": json.dumps({"title": title, "price": price, "description": description})},
            files={"image": (filename, image if image is not None else make_image(), "image/png")},
        )
        assert r.status_code == 201, r.text
        return r.json()

    return _create
