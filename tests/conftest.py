import os

# The module-level app in taskvault.main is built from the environment on import.
os.environ.setdefault("JWT_SECRET", "test-signing-secret")
os.environ.setdefault("AES_SECRET_KEY", "8f3a1c2b4d5e6f708192a3b4c5d6e7f8091a2b3c4d5e6f708192a3b4c5d6e7f8")
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from taskvault.crypto import FieldCipher  # noqa: E402
from taskvault.db import SQLiteDatabase, SQLiteTaskStore, SQLiteUserStore  # noqa: E402
from taskvault.main import create_app  # noqa: E402
from taskvault.repositories import InMemoryTaskStore, InMemoryUserStore, TaskRepository  # noqa: E402
from taskvault.settings import Settings  # noqa: E402

TEST_KEY = "8f3a1c2b4d5e6f708192a3b4c5d6e7f8091a2b3c4d5e6f708192a3b4c5d6e7f8"
OTHER_KEY = "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff"
TEST_SECRET = "test-signing-secret"


@pytest.fixture()
def settings(tmp_path) -> Settings:
    """Isolated settings: in-memory storage and a cheap bcrypt cost."""
    return Settings(
        jwt_secret=TEST_SECRET,
        aes_secret_key=TEST_KEY,
        environment="development",
        persistence_backend="memory",
        sqlite_db_path=str(tmp_path / "taskvault.db"),
        bcrypt_rounds=4,
    )


@pytest.fixture()
def app(settings):
    return create_app(settings)


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def make_client(app):
    """Factory for extra clients, each with its own cookie jar (one per user)."""
    clients = []

    def _make(**kwargs) -> TestClient:
        c = TestClient(app, **kwargs)
        clients.append(c)
        return c

    yield _make
    for c in clients:
        c.close()


@pytest.fixture()
def register(make_client):
    """Register a user on a fresh client and return (client, user dict)."""

    def _register(name="Ann", email="ann@x.com", password="pw123456"):
        c = make_client()
        res = c.post("/auth/register", json={"name": name, "email": email, "password": password})
        assert res.status_code == 201, res.text
        return c, res.json()["user"]

    return _register


@pytest.fixture()
def cipher() -> FieldCipher:
    return FieldCipher(TEST_KEY)


@pytest.fixture(params=["memory", "sqlite"])
def stores(request, tmp_path):
    """(user_store, task_store) for each persistence backend."""
    if request.param == "memory":
        yield InMemoryUserStore(), InMemoryTaskStore()
        return
    database = SQLiteDatabase(str(tmp_path / "stores.db"))
    yield SQLiteUserStore(database), SQLiteTaskStore(database)
    database.close()


@pytest.fixture()
def task_store(stores):
    return stores[1]


@pytest.fixture()
def user_store(stores):
    return stores[0]


@pytest.fixture()
def repo(task_store, cipher) -> TaskRepository:
    return TaskRepository(task_store, cipher)
