import asyncio
import inspect
import os
import sys
from pathlib import Path

os.environ.setdefault("APP_ENV", "Testing")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-testing-only-do-not-use-in-production")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from staffapi.app import create_app  # noqa: E402
from staffapi.config import Settings  # noqa: E402

TEST_SECRET = "test-secret-key-for-testing-only-do-not-use-in-production"


def make_settings(**overrides) -> Settings:
    values = {
        "app_env": "Testing",
        "jwt_secret": TEST_SECRET,
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def runtime(app):
    return app.state.runtime


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def login(client):
    """Return a helper that logs in and yields the bearer token."""

    def _login(username: str = "admin", password: str = "admin123") -> str:
        response = client.post(
            "/api/auth/login", json={"username": username, "password": password}
        )
        assert response.status_code == 200, response.text
        return response.json()["data"]["token"]

    return _login


@pytest.fixture
def auth_headers(login):
    return {"Authorization": f"Bearer {login()}"}


@pytest.fixture
def user_headers(login):
    return {"Authorization": f"Bearer {login('user', 'user123')}"}


def pytest_pyfunc_call(pyfuncitem):
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames
            if name in pyfuncitem.funcargs
        }
        asyncio.run(pyfuncitem.obj(**call_kwargs))
        return True
    return None


def pytest_configure(config):
    config.addinivalue_line("markers", "asyncio: mark test as async")
