"""
Shared test fixtures.

Provides an in-memory DocumentStore, a fake HTTP session for media
downloads, a recording sleep, and a mock Supabase client for the adapter.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

import itertools
import threading
import time
from typing import Any, Optional

import pytest
import requests

from models.schema import FieldDescriptor
from services.collection_registry import CollectionRegistry
from services.document_store import MediaFile
from services.schema_index import SchemaIndex
from tests.factories import posts_fields

# ===================
# IN-MEMORY DOCUMENT STORE
# ===================

class InMemoryDocumentStore:
    """
    DocumentStore fake keeping documents in dicts.

    Ids are "1", "2", ... per store, kept under identity_field.
    Failures can be queued per operation:
        store.fail_next("create_media", StoreWriteConflictError("busy"))
    """

    def __init__(self, identity_field: str = "id"):
        self.identity_field = identity_field
        self.collections: dict[str, list[dict]] = {}
        self.media_files: list[MediaFile] = []
        self.calls: list[tuple[str, str]] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._failures: dict[str, list[Exception]] = {}

    def seed(self, collection: str, documents: list[dict]) -> None:
        self.collections.setdefault(collection, []).extend(dict(doc) for doc in documents)

    def fail_next(self, operation: str, *errors: Exception) -> None:
        self._failures.setdefault(operation, []).extend(errors)

    def _maybe_fail(self, operation: str) -> None:
        queued = self._failures.get(operation)
        if queued:
            raise queued.pop(0)

    def documents(self, collection: str) -> list[dict]:
        return self.collections.get(collection, [])

    # DocumentStore protocol

    def create(self, collection: str, data: dict, locale: Optional[str] = None) -> dict:
        with self._lock:
            self.calls.append(("create", collection))
            self._maybe_fail("create")
            document = dict(data)
            document.setdefault(self.identity_field, str(next(self._ids)))
            self.collections.setdefault(collection, []).append(document)
            return dict(document)

    def find(
        self,
        collection: str,
        where: dict[str, Any],
        locale: Optional[str] = None,
        limit: int = 1
    ) -> list[dict]:
        with self._lock:
            self.calls.append(("find", collection))
            self._maybe_fail("find")
            matches = [
                dict(doc) for doc in self.collections.get(collection, [])
                if all(doc.get(key) == value for key, value in where.items())
            ]
            return matches[:limit]

    def update(self, id: Any, collection: str, data: dict, locale: Optional[str] = None) -> dict:
        with self._lock:
            self.calls.append(("update", collection))
            self._maybe_fail("update")
            for doc in self.collections.get(collection, []):
                if doc.get(self.identity_field) == id:
                    doc.clear()
                    doc.update(data)
                    doc[self.identity_field] = id
                    return dict(doc)
            raise LookupError(f"Document {id} not found in {collection}")

    def create_media(
        self,
        collection: str,
        data: dict,
        file: MediaFile,
        locale: Optional[str] = None
    ) -> dict:
        with self._lock:
            self._maybe_fail("create_media")
            self.media_files.append(file)
        return self.create(collection, {**data, "filename": file.name}, locale)


# ===================
# FAKE HTTP SESSION
# ===================

class FakeResponse:
    """Subset of requests.Response used by the media ingestor."""

    def __init__(self, status_code: int = 200, content_type: str = "image/jpeg", content: bytes = b"img"):
        self.status_code = status_code
        self.headers = {"content-type": content_type}
        self.content = content

    @property
    def ok(self) -> bool:
        return self.status_code < 400


class FakeSession:
    """
    requests.Session stand-in.

    Responses are looked up by URL; a queued exception is raised instead
    of answering. Tracks concurrent in-flight calls.
    """

    def __init__(self, delay: float = 0.0):
        self.responses: dict[str, FakeResponse] = {}
        self.errors: dict[str, list[Exception]] = {}
        self.requested: list[str] = []
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def respond(self, url: str, response: Optional[FakeResponse] = None) -> None:
        self.responses[url] = response or FakeResponse()

    def fail(self, url: str, *errors: Exception) -> None:
        self.errors.setdefault(url, []).extend(errors)

    def get(self, url: str, timeout: Optional[float] = None) -> FakeResponse:
        with self._lock:
            self.requested.append(url)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            queued = self.errors.get(url)
            if queued:
                raise queued.pop(0)
            return self.responses.get(url) or FakeResponse()
        finally:
            with self._lock:
                self.in_flight -= 1


class RecordingSleep:
    """Callable sleep that records requested delays without waiting."""

    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


# ===================
# FIXTURES
# ===================

@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def recorded_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def post_fields() -> list[FieldDescriptor]:
    return posts_fields()


@pytest.fixture
def post_schema(post_fields) -> SchemaIndex:
    return SchemaIndex.build(post_fields)


@pytest.fixture
def registry(post_fields) -> CollectionRegistry:
    """Registry with `posts` and a bare `media` collection."""
    return CollectionRegistry({
        "posts": post_fields,
        "media": [{"name": "alt", "type": "text"}, {"name": "url", "type": "text"}],
    })


@pytest.fixture
def connection_error() -> Exception:
    return requests.exceptions.ConnectionError("connection reset")


# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None):
        self.data = data or []


class MockSupabaseQuery:
    """Chainable query recording the filters applied to it."""

    def __init__(self, table: "MockSupabaseTable", data: list):
        self._table = table
        self._data = data
        self.filters: list[tuple[str, Any]] = []
        self.limit_count: Optional[int] = None

    def select(self, *args, **kwargs):
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        self._data = [row for row in self._data if row.get(column) == value]
        return self

    def limit(self, count):
        self.limit_count = count
        return self

    def execute(self) -> MockSupabaseResponse:
        if self._table.error is not None:
            raise self._table.error
        data = self._data if self.limit_count is None else self._data[:self.limit_count]
        return MockSupabaseResponse(data=data)


class MockSupabaseTable:
    """Mock table; insert/update act on the shared row list."""

    def __init__(self, rows: list, error: Optional[Exception] = None):
        self.rows = rows
        self.error = error
        self.last_query: Optional[MockSupabaseQuery] = None

    def select(self, *args, **kwargs):
        self.last_query = MockSupabaseQuery(self, list(self.rows))
        return self.last_query

    def insert(self, data):
        row = {"id": f"row-{len(self.rows) + 1}", **data}
        self.rows.append(row)
        self.last_query = MockSupabaseQuery(self, [row])
        return self.last_query

    def update(self, data):
        table = self

        class _UpdateQuery(MockSupabaseQuery):
            def execute(self):
                if table.error is not None:
                    raise table.error
                for row in self._data:
                    row.update(data)
                return MockSupabaseResponse(data=self._data)

        self.last_query = _UpdateQuery(self, self.rows)
        return self.last_query


class MockStorageBucket:
    def __init__(self):
        self.uploads: list[tuple[str, bytes, dict]] = []

    def upload(self, path, file, file_options=None):
        self.uploads.append((path, file, file_options or {}))
        return {"path": path}


class MockStorage:
    def __init__(self):
        self.buckets: dict[str, MockStorageBucket] = {}

    def from_(self, name: str) -> MockStorageBucket:
        return self.buckets.setdefault(name, MockStorageBucket())

    def list_buckets(self):
        return list(self.buckets)


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables: dict[str, MockSupabaseTable] = {}
        self.storage = MockStorage()

    def set_table_data(self, table_name: str, data: list, error: Optional[Exception] = None):
        """Configure rows (and an optional execute() error) for a table."""
        self._tables[table_name] = MockSupabaseTable(data, error)

    def table(self, name: str) -> MockSupabaseTable:
        return self._tables.setdefault(name, MockSupabaseTable([]))


@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("posts", [{"id": "1", "sku": "A"}])
    """
    return MockSupabaseClient()
