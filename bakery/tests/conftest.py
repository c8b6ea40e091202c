import pytest
from fastapi.testclient import TestClient

from bakery.api import create_app
from bakery.config import Settings
from bakery.db import Database
from bakery.service import LedgerService


@pytest.fixture
def db():
    database = Database("sqlite://").open()
    yield database
    database.close()


@pytest.fixture
def service(db):
    return LedgerService(db)


@pytest.fixture
def client():
    app = create_app(Settings(database_url="sqlite://", log_level="WARNING"))
    with TestClient(app) as test_client:
        yield test_client
