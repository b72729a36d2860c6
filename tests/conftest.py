# tests/conftest.py
import os

# Keep the module-level app off the dev database file
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient

from linkshort.main import create_app


@pytest.fixture
def app():
    # Fresh in-memory database per test
    return create_app("sqlite://")


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def db(app):
    session = app.state.sessionmaker()
    try:
        yield session
    finally:
        session.close()
