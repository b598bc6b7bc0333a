import os
import tempfile

# Settings are read from the environment when main.py is imported
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ["LOG_FILE"] = ""
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="board-uploads-")

import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.dependencies import bind_services
from app.services.credentials import CredentialStore
from app.services.database import PostDB, UserDB
from app.services.feed import FeedQuery
from app.utils.auth import TokenService
from main import create_app
from tests.fakes import FakeDatabase

TEST_SECRET = "test-secret"


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        JWT_SECRET_KEY=TEST_SECRET,
        BCRYPT_ROUNDS=4,
        UPLOAD_DIR=str(tmp_path / "uploads"),
        LOG_FILE="",
        RATE_LIMIT_PER_MINUTE=1000
    )


@pytest.fixture()
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture()
def users(database) -> UserDB:
    return UserDB(database)


@pytest.fixture()
def posts(database) -> PostDB:
    return PostDB(database)


@pytest.fixture()
def store(users) -> CredentialStore:
    return CredentialStore(users, bcrypt_rounds=4)


@pytest.fixture()
def feed(posts, users) -> FeedQuery:
    return FeedQuery(posts, users)


@pytest.fixture()
def tokens() -> TokenService:
    return TokenService(TEST_SECRET)


@pytest.fixture()
def app(settings, database):
    application = create_app(settings)
    bind_services(application, database, settings)
    return application


@pytest.fixture()
def client(app) -> TestClient:
    return TestClient(app)
