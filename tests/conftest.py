import os
import sys

import pytest

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from server.models.user import Actor, Role
from storage.sqlite import database
from storage.sqlite.kv_store import KeyValueStore

os.environ.setdefault("GEMINI_API_KEY", "test-key")


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    db_path = tmp_path / "test_scholarflow.db"
    monkeypatch.setattr(database, "DB_PATH", db_path)
    return db_path


@pytest.fixture
def store(temp_db):
    return KeyValueStore(namespace="test_vault")


@pytest.fixture
def student():
    return Actor(id="s1", name="Alex Rivera", role=Role.STUDENT)


@pytest.fixture
def reviewer():
    return Actor(id="r1", name="Dr. Sarah Jenkins", role=Role.REVIEWER)


@pytest.fixture
def admin():
    return Actor(id="a1", name="Dean Henderson", role=Role.ADMIN)
