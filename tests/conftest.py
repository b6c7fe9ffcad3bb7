# File: tests/conftest.py

import os

# Settings are read at import time, so set the environment first.
os.environ.setdefault("ACCESS_TOKEN_SECRET", "test-access-secret")
os.environ.setdefault("REFRESH_TOKEN_SECRET", "test-refresh-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("COOKIE_SECURE", "false")

from datetime import timedelta

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_credential_manager, get_db
from app.core.security import CredentialManager, TokenConfig
from app.db.init_db import init_db
from app.main import app
from app.models.base import Base
from app.models.user import CREDENTIAL_MANAGER_KEY

ACCESS_SECRET = "access-secret-for-tests"
REFRESH_SECRET = "refresh-secret-for-tests"


@pytest.fixture
def token_config() -> TokenConfig:
    return TokenConfig(
        access_token_secret=ACCESS_SECRET,
        access_token_lifetime=timedelta(minutes=15),
        refresh_token_secret=REFRESH_SECRET,
        refresh_token_lifetime=timedelta(days=7),
    )


@pytest.fixture
def manager(token_config) -> CredentialManager:
    return CredentialManager(token_config)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory, manager):
    def override_get_db(current: CredentialManager = Depends(get_credential_manager)):
        session = session_factory(info={CREDENTIAL_MANAGER_KEY: current})
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_credential_manager] = lambda: manager
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def registered_user(client):
    payload = {
        "username": "Alice",
        "email": "alice@mailbox.org",
        "full_name": "Alice Example",
        "password": "Sup3rSecret!",
    }
    resp = client.post("/api/v1/users/register", json=payload)
    assert resp.status_code == 200, resp.text
    return resp.json()
