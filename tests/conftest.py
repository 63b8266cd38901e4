"""
Shared pytest fixtures and configuration for all tests.

Unit tests run the store against an in-memory collection double that
understands the small query language the store uses ($or, $exists, $gt,
$lt and $set).
"""
import copy
import logging
import os
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Callable, Optional

import pytest

# Hypothesis configuration for property-based testing
from hypothesis import settings, Verbosity, Phase

# Default profile: balanced for local development
settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,
    print_blob=True,
)

# CI profile: more thorough testing for continuous integration
settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    derandomize=True,
)

# Debug profile: minimal examples for quick debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    phases=[Phase.explicit, Phase.reuse, Phase.generate],
)

# Fast profile: quick smoke tests
settings.register_profile(
    "fast",
    max_examples=20,
    verbosity=Verbosity.normal,
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


def _matches_condition(value: Any, present: bool, condition: Any) -> bool:
    if isinstance(condition, dict) and any(k.startswith("$") for k in condition):
        for op, operand in condition.items():
            if op == "$exists":
                if present != bool(operand):
                    return False
            elif op == "$gt":
                if not present or value is None or not value > operand:
                    return False
            elif op == "$lt":
                if not present or value is None or not value < operand:
                    return False
            else:
                raise NotImplementedError(op)
        return True
    return present and value == condition


def matches(document: dict, query: dict) -> bool:
    """Evaluate the subset of MongoDB query operators used by the store."""
    for key, condition in query.items():
        if key == "$or":
            if not any(matches(document, clause) for clause in condition):
                return False
        elif not _matches_condition(document.get(key), key in document, condition):
            return False
    return True


class FakeCursor:
    def __init__(self, documents: list):
        self._documents = documents

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for document in self._documents:
            yield document


class FakeCollection:
    """In-memory stand-in for pymongo's AsyncCollection."""

    def __init__(self, name: str = "sessions"):
        self.name = name
        self.documents: dict[Any, dict] = {}
        self.indexes: dict[str, dict] = {}
        self.calls: list[tuple[str, tuple, dict]] = []
        self.option_calls: list[dict] = []
        self.failures: dict[str, Exception] = {}

    def _record(self, method: str, *args: Any, **kwargs: Any) -> None:
        self.calls.append((method, args, kwargs))
        if method in self.failures:
            raise self.failures[method]

    def calls_to(self, method: str) -> list[tuple[tuple, dict]]:
        return [(args, kwargs) for name, args, kwargs in self.calls if name == method]

    def with_options(self, **kwargs: Any) -> "FakeCollection":
        self.option_calls.append(kwargs)
        return self

    async def find_one(self, filter: dict, *args: Any, **kwargs: Any) -> Optional[dict]:
        self._record("find_one", filter, **kwargs)
        for document in self.documents.values():
            if matches(document, filter):
                return copy.deepcopy(document)
        return None

    def find(self, filter: dict, *args: Any, **kwargs: Any) -> FakeCursor:
        self._record("find", filter, **kwargs)
        return FakeCursor([
            copy.deepcopy(document)
            for document in self.documents.values()
            if matches(document, filter)
        ])

    async def update_one(self, filter: dict, update: dict, upsert: bool = False, **kwargs: Any):
        self._record("update_one", filter, update, upsert=upsert, **kwargs)
        fields = copy.deepcopy(update["$set"])
        for document in self.documents.values():
            if matches(document, filter):
                modified = any(document.get(k) != v for k, v in fields.items())
                document.update(fields)
                return SimpleNamespace(
                    matched_count=1,
                    modified_count=int(modified),
                    upserted_id=None,
                )
        if upsert:
            document = {"_id": filter["_id"], **fields}
            self.documents[filter["_id"]] = document
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=filter["_id"])
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)

    async def delete_one(self, filter: dict, *args: Any, **kwargs: Any):
        self._record("delete_one", filter, **kwargs)
        for key, document in list(self.documents.items()):
            if matches(document, filter):
                del self.documents[key]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def delete_many(self, filter: dict, *args: Any, **kwargs: Any):
        self._record("delete_many", filter, **kwargs)
        doomed = [key for key, document in self.documents.items() if matches(document, filter)]
        for key in doomed:
            del self.documents[key]
        return SimpleNamespace(deleted_count=len(doomed))

    async def count_documents(self, filter: dict, *args: Any, **kwargs: Any) -> int:
        self._record("count_documents", filter, **kwargs)
        return sum(1 for document in self.documents.values() if matches(document, filter))

    async def create_index(self, keys: Any, **kwargs: Any) -> str:
        self._record("create_index", keys, **kwargs)
        name = "_".join(f"{field}_{direction}" for field, direction in keys)
        self.indexes[name] = {"keys": keys, **kwargs}
        return name


class FakeDatabase:
    def __init__(self, name: str = "test"):
        self.name = name
        self.collections: dict[str, FakeCollection] = {}

    def get_collection(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


class FakeAdmin:
    def __init__(self):
        self.commands: list[str] = []
        self.failure: Optional[Exception] = None

    async def command(self, name: str) -> dict:
        self.commands.append(name)
        if self.failure is not None:
            raise self.failure
        return {"ok": 1}


class FakeClient:
    """Stand-in for pymongo's AsyncMongoClient."""

    def __init__(self, default_database: Optional[str] = None):
        self.default_database = default_database
        self.databases: dict[str, FakeDatabase] = {}
        self.admin = FakeAdmin()
        self.closed = 0

    def get_database(self, name: str) -> FakeDatabase:
        if name not in self.databases:
            self.databases[name] = FakeDatabase(name)
        return self.databases[name]

    def get_default_database(self, default: Optional[str] = None) -> FakeDatabase:
        return self.get_database(self.default_database or default)

    async def close(self) -> None:
        self.closed += 1


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def fake_database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def sessions(fake_database: FakeDatabase) -> FakeCollection:
    """The collection a store built by make_store writes to."""
    return fake_database.get_collection("sessions")


@pytest.fixture
def make_store(fake_database: FakeDatabase, clock: FakeClock) -> Callable[..., Any]:
    """Factory building MongoStore instances on the fake database."""
    from mongo_session_store import MongoStore

    created = []

    def factory(**options: Any) -> MongoStore:
        options.setdefault("database", fake_database)
        options.setdefault("clock", clock)
        store = MongoStore(**options)
        created.append(store)
        return store

    return factory


@pytest.fixture
def sample_session() -> dict:
    """Sample session as handed over by session middleware."""
    return {
        "cookie": {
            "originalMaxAge": None,
            "expires": None,
            "secure": False,
            "httpOnly": True,
            "path": "/",
        },
        "user": {"id": 42, "name": "alice"},
        "views": 3,
    }


@pytest.fixture
def restore_package_logger():
    """Undo configure_logging so later tests still see propagated records."""
    package_logger = logging.getLogger("mongo_session_store")
    handlers = package_logger.handlers[:]
    level = package_logger.level
    propagate = package_logger.propagate
    yield package_logger
    package_logger.handlers = handlers
    package_logger.setLevel(level)
    package_logger.propagate = propagate
