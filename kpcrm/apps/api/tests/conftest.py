"""Pytest configuration and fixtures."""

import sys
from pathlib import Path
# Inject sys.path for reliable pytest imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # => .../apps/api

import time
from collections import defaultdict
from types import SimpleNamespace
from typing import Any, Optional
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from kpcrm_api.auth.identity import UserProfile, VerifiedIdentity
from kpcrm_api.config.env import Settings
from kpcrm_api.main import create_app
from kpcrm_api.rate_limiter import NoOpRateLimiter

ADMIN_ID = "11111111-1111-4111-8111-111111111111"
MANAGER_ID = "22222222-2222-4222-8222-222222222222"
REP_ID = "33333333-3333-4333-8333-333333333333"
READER_ID = "44444444-4444-4444-8444-444444444444"
ORPHAN_ID = "55555555-5555-4555-8555-555555555555"
ODD_ROLE_ID = "66666666-6666-4666-8666-666666666666"
ORG_ID = "77777777-7777-4777-8777-777777777777"
RECORD_ID = "88888888-8888-4888-8888-888888888888"

TOKENS = {
    "admin-token": VerifiedIdentity(user_id=ADMIN_ID, email="admin@kitchenpantry.test"),
    "manager-token": VerifiedIdentity(user_id=MANAGER_ID, email="manager@kitchenpantry.test"),
    "rep-token": VerifiedIdentity(user_id=REP_ID, email="rep@kitchenpantry.test"),
    "reader-token": VerifiedIdentity(user_id=READER_ID, email="reader@kitchenpantry.test"),
    "orphan-token": VerifiedIdentity(user_id=ORPHAN_ID, email="orphan@kitchenpantry.test"),
    "odd-role-token": VerifiedIdentity(user_id=ODD_ROLE_ID, email="odd@kitchenpantry.test"),
}

PROFILES = {
    ADMIN_ID: UserProfile(id=ADMIN_ID, email="admin@kitchenpantry.test", role="admin", organization_id=ORG_ID),
    MANAGER_ID: UserProfile(id=MANAGER_ID, email="manager@kitchenpantry.test", role="manager", organization_id=ORG_ID),
    REP_ID: UserProfile(id=REP_ID, email="rep@kitchenpantry.test", role="sales_rep", organization_id=ORG_ID),
    READER_ID: UserProfile(id=READER_ID, email="reader@kitchenpantry.test", role="read_only"),
    ODD_ROLE_ID: UserProfile(id=ODD_ROLE_ID, email="odd@kitchenpantry.test", role="superuser"),
}


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class FakeIdentityProvider:
    """In-memory identity provider: known tokens verify, everything else is rejected."""

    def __init__(self, tokens: Optional[dict[str, VerifiedIdentity]] = None, error: Optional[Exception] = None, delay: float = 0.0):
        self.tokens = dict(TOKENS if tokens is None else tokens)
        self.error = error
        self.delay = delay
        self.calls: list[str] = []

    def verify_token(self, token: str) -> Optional[VerifiedIdentity]:
        self.calls.append(token)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.tokens.get(token)


class FakeProfileStore:
    def __init__(self, profiles: Optional[dict[str, UserProfile]] = None, error: Optional[Exception] = None):
        self.profiles = dict(PROFILES if profiles is None else profiles)
        self.error = error
        self.calls: list[str] = []

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        self.calls.append(user_id)
        if self.error is not None:
            raise self.error
        return self.profiles.get(user_id)


class RecordingAuditSink:
    def __init__(self):
        self.records: list[tuple[str, dict]] = []

    def put_record(self, key: str, data: dict, *, content_type: str = "application/json") -> None:
        self.records.append((key, data))


class CountingRedis:
    """Just enough of redis.Redis for the INCR/EXPIRE fixed window."""

    def __init__(self):
        self.counters: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    def incr(self, key: str) -> int:
        self.counters[key] = self.counters.get(key, 0) + 1
        return self.counters[key]

    def expire(self, key: str, seconds: int) -> bool:
        self.ttls[key] = seconds
        return True


class FakeQuery:
    """PostgREST builder stand-in: records every chained call, answers execute() from a queue."""

    def __init__(self, client: "FakeSupabase", table: str):
        self.client = client
        self.table = table
        self.calls: list[tuple[str, tuple, dict]] = []

    def __getattr__(self, name: str):
        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return method

    def execute(self) -> SimpleNamespace:
        data, count = self.client.next_result(self.table)
        return SimpleNamespace(data=data, count=count)

    def names(self) -> list[str]:
        return [name for name, _, _ in self.calls]

    def args_of(self, name: str) -> list[tuple]:
        return [args for call_name, args, _ in self.calls if call_name == name]


class FakeSupabase:
    """Minimal Supabase client: table() queries plus a MagicMock auth namespace."""

    def __init__(self):
        self.results: dict[str, list[tuple[Any, Optional[int]]]] = defaultdict(list)
        self.queries: list[FakeQuery] = []
        self.auth = MagicMock()

    def queue(self, table: str, data: Any, count: Optional[int] = None) -> None:
        self.results[table].append((data, count))

    def next_result(self, table: str) -> tuple[Any, Optional[int]]:
        queued = self.results[table]
        return queued.pop(0) if queued else ([], 0)

    def table(self, name: str) -> FakeQuery:
        query = FakeQuery(self, name)
        self.queries.append(query)
        return query

    def last_query(self) -> FakeQuery:
        return self.queries[-1]


@pytest.fixture
def settings() -> Settings:
    return Settings(env="test", json_logs=False)


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def profile_store() -> FakeProfileStore:
    return FakeProfileStore()


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def data_client() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def auth_client() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def make_app(settings, identity_provider, profile_store, audit_sink, data_client, auth_client):
    """Factory for an application whose external collaborators are in-memory fakes.

    Keyword overrides replace individual collaborators (e.g. rate_limiter=...).
    """

    def _make(app_settings: Optional[Settings] = None, **overrides):
        collaborators = {
            "identity_provider": identity_provider,
            "profile_store": profile_store,
            "data_client": data_client,
            "auth_client": auth_client,
            "audit_sink": audit_sink,
            "rate_limiter": NoOpRateLimiter(),
        }
        collaborators.update(overrides)
        return create_app(app_settings or settings, **collaborators)

    return _make


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
