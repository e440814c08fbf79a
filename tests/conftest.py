import pytest
from fastapi.testclient import TestClient

from helpers import BrokenRepository, memory_settings
from todo_api.main import create_app
from todo_api.repositories import InMemoryRepository


@pytest.fixture
def repo():
    return InMemoryRepository()


@pytest.fixture
def client(repo):
    app = create_app(memory_settings(), repository=repo)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def broken_client():
    app = create_app(memory_settings(), repository=BrokenRepository())
    with TestClient(app) as c:
        yield c
