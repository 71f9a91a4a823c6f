"""
Shared fixtures: in-memory database, fake collaborators and a controllable clock.
"""
import json
from concurrent.futures import Executor, Future
from datetime import datetime, timedelta
from typing import List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import household_insights.models  # noqa: F401
from household_insights.models.base import Base
from household_insights.services.llm_service import TextGenerator
from household_insights.services.record_store import Member, RawRecord, RecordStore, RecordTypeDef
from household_insights.utils.cache import MemoryCache, TieredCache
from household_insights.utils.cache_store import SQLCacheStore

NOW = datetime(2024, 3, 15, 9, 30)


# ────────────────────────────────────────────
# FAKES
# ────────────────────────────────────────────


class FakeClock:
    """Epoch-seconds clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ImmediateExecutor(Executor):
    """Runs submitted work inline so durable writes land before submit() returns."""

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class DeferredExecutor(Executor):
    """Holds submitted work until run_all() is called."""

    def __init__(self):
        self.queued = []

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        self.queued.append((future, fn, args, kwargs))
        return future

    def run_all(self):
        queued, self.queued = self.queued, []
        for future, fn, args, kwargs in queued:
            future.set_result(fn(*args, **kwargs))


class FakeTextGenerator(TextGenerator):
    def __init__(self, response: str = "", available: bool = True, error: Optional[Exception] = None):
        self.response = response
        self.available = available
        self.error = error
        self.prompts: List[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def is_available(self) -> bool:
        return self.available

    def generate(self, prompt: str, max_tokens: int) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response


class InMemoryRecordStore(RecordStore):
    def __init__(self, records=None, members=None, record_types=None):
        self.records: List[RawRecord] = list(records or [])
        self.members: List[Member] = list(members or [])
        self.record_types: List[RecordTypeDef] = list(record_types or [])
        self.fetch_calls = 0

    def fetch_records(self, household_id, limit, recent_first=True, record_type_id=None,
                      member_id=None, since=None):
        self.fetch_calls += 1
        rows = [
            r for r in self.records
            if (record_type_id is None or r.record_type_id == record_type_id)
            and (member_id is None or r.member_id == member_id)
            and (since is None or r.created_at >= since)
        ]
        rows.sort(key=lambda r: (r.created_at, r.id), reverse=recent_first)
        return rows[:limit]

    def fetch_members(self, household_id):
        return list(self.members)

    def fetch_record_type_definitions(self, household_id):
        return list(self.record_types)


class FailingRecordStore(RecordStore):
    def fetch_records(self, *args, **kwargs):
        raise RuntimeError("record store unavailable")

    def fetch_members(self, household_id):
        raise RuntimeError("record store unavailable")

    def fetch_record_type_definitions(self, household_id):
        raise RuntimeError("record store unavailable")


class FailingCacheStore(SQLCacheStore):
    """Durable tier where every operation blows up."""

    def __init__(self):
        pass

    def get(self, key):
        raise RuntimeError("durable store down")

    def put(self, key, payload, expires_at, scope):
        raise RuntimeError("durable store down")

    def delete(self, key):
        raise RuntimeError("durable store down")

    def delete_where(self, scope):
        raise RuntimeError("durable store down")

    def delete_expired(self, now=None):
        raise RuntimeError("durable store down")


# ────────────────────────────────────────────
# BUILDERS
# ────────────────────────────────────────────


def make_record(record_id, category, content, days_ago=0, record_type_id=1, member_id=1,
                title="Entry", tags=None, member_name="Alex", record_type_name="Sleep Log"):
    return RawRecord(
        id=record_id,
        title=title,
        content=json.dumps(content) if isinstance(content, dict) else content,
        category=category,
        member_id=member_id,
        record_type_id=record_type_id,
        created_at=NOW - timedelta(days=days_ago),
        tags=tags,
        member_name=member_name,
        record_type_name=record_type_name,
    )


def sleep_household(record_count=5):
    """A small household with one sleep log, hours rising a little each night."""
    records = [
        make_record(i, "Sleep", {"hours": 6 + 0.5 * (record_count - i), "quality": "good"}, days_ago=i)
        for i in range(1, record_count + 1)
    ]
    members = [Member(id=1, name="Alex", household_id="house-a")]
    record_types = [
        RecordTypeDef(
            id=1,
            name="Sleep Log",
            category="Sleep",
            description="Nightly sleep",
            fields=json.dumps([
                {"name": "hours", "type": "number", "required": True},
                {"name": "quality", "type": "select"},
            ]),
        )
    ]
    return records, members, record_types


# ────────────────────────────────────────────
# FIXTURES
# ────────────────────────────────────────────


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache_store(session_factory):
    return SQLCacheStore(session_factory)


@pytest.fixture
def cache(cache_store, clock):
    return TieredCache(MemoryCache(clock=clock), cache_store, executor=ImmediateExecutor(), clock=clock)
