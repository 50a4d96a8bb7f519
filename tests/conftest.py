"""
Pytest configuration and shared fixtures.
"""

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from store import InMemoryStore, StoreError

USER_ID = "user-1"
OTHER_USER_ID = "user-2"
HEADERS = {"user-id": USER_ID}


class RecordingStore(InMemoryStore):
    """In-memory store that records every query and can be told to fail."""

    def __init__(self, tables=None):
        super().__init__(tables)
        self.calls = []
        self.failures = {}

    def fail(self, table, action, error=None):
        """Make every ``action`` on ``table`` raise."""
        self.failures[(table, action)] = error or StoreError("connection reset by peer")

    async def execute(self, query):
        key = (query.table, query.action.value)
        self.calls.append(key)
        if key in self.failures:
            raise self.failures[key]
        return await super().execute(query)


def sample_tables():
    """Rows shared by the API and service tests."""
    return {
        "books": [
            {
                "id": "b1",
                "user_id": USER_ID,
                "title": "Dune",
                "author": "Frank Herbert",
                "description": "Desert planet politics",
                "status": "read",
                "rating": 5,
                "created_at": "2024-01-01T10:00:00+00:00",
                "updated_at": "2024-01-01T10:00:00+00:00",
            },
            {
                "id": "b2",
                "user_id": USER_ID,
                "title": "Neuromancer",
                "author": "William Gibson",
                "description": "Cyberpunk classic",
                "status": "to-read",
                "created_at": "2024-02-01T10:00:00+00:00",
                "updated_at": "2024-02-01T10:00:00+00:00",
            },
            {
                "id": "b3",
                "user_id": OTHER_USER_ID,
                "title": "Dune Messiah",
                "author": "Frank Herbert",
                "status": "reading",
                "created_at": "2024-03-01T10:00:00+00:00",
                "updated_at": "2024-03-01T10:00:00+00:00",
            },
        ],
        "tags": [
            {"id": "t1", "user_id": USER_ID, "name": "sci-fi", "color": "#3366ff"},
            {"id": "t2", "user_id": USER_ID, "name": "classic"},
            {"id": "t3", "user_id": USER_ID, "name": "unused"},
            {"id": "t4", "user_id": OTHER_USER_ID, "name": "theirs"},
        ],
        "book_tags": [
            {"id": "bt1", "book_id": "b1", "tag_id": "t1"},
            {"id": "bt2", "book_id": "b3", "tag_id": "t4"},
        ],
    }


@pytest.fixture
def store():
    """Recording in-memory store seeded with sample rows."""
    return RecordingStore(sample_tables())


@pytest.fixture
def app(store):
    """Application wired to the recording store."""
    return create_app(store=store)


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)
