# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Generator, Iterator
from datetime import UTC, datetime, timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ.setdefault("HMAC_SECRET", "test-hmac-secret-do-not-use-in-production")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("NOTIFIER_BACKEND", "log")
os.environ.setdefault("SHOPIFY_STOREFRONT_API_URL", "https://shop.example/api/2024-04/graphql.json")
os.environ.setdefault("SHOPIFY_STOREFRONT_API_TOKEN", "storefront-test-token")
os.environ["TOKEN_COOKIE_SECURE"] = "false"

from otp_gate.api.v1.dependencies import (  # noqa: E402
    get_clock,
    get_notifier,
    get_policy,
    get_resolver,
)
from otp_gate.db.session import Base  # noqa: E402
from otp_gate.db.session import get_db as app_get_session  # noqa: E402
from otp_gate.main import app as fastapi_app  # noqa: E402
from otp_gate.services.challenge import ChallengeEngine, ChallengePolicy  # noqa: E402
from otp_gate.services.codes import CodeCodec  # noqa: E402
from otp_gate.services.errors import ResolverError  # noqa: E402
from otp_gate.services.notifier import DeliveryError  # noqa: E402
from otp_gate.services.tokens import SessionTokenIssuer  # noqa: E402

TEST_DB_URL = "sqlite://"
TEST_SECRET = os.environ["HMAC_SECRET"]
CLOCK_START = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


class ManualClock:
    """Clock that only moves when a test tells it to."""

    def __init__(self, start: datetime = CLOCK_START) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class RecordingNotifier:
    """Notifier that remembers every code it was asked to deliver.

    ``failures`` sends fail before deliveries start succeeding; a negative
    value makes every send fail.
    """

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.calls = 0
        self.sent: list[tuple[str, str]] = []

    async def send(self, contact: str, code: str) -> None:
        self.calls += 1
        if self.failures < 0 or self.calls <= self.failures:
            raise DeliveryError("provider unavailable")
        self.sent.append((contact, code))

    async def close(self) -> None:
        return None

    @property
    def last_code(self) -> str:
        return self.sent[-1][1]


class FakeResolver:
    """Checkout resolver returning a URL derived from the cart id."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.requested: list[str] = []

    async def resolve(self, subject_id: str) -> str:
        self.requested.append(subject_id)
        if self.fail:
            raise ResolverError("Checkout URL not found")
        return f"https://shop.example/checkouts/{subject_id}"

    async def close(self) -> None:
        return None


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
        session.close()


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture()
def policy() -> ChallengePolicy:
    return ChallengePolicy(delivery_backoff_seconds=0)


@pytest.fixture()
def codec() -> CodeCodec:
    return CodeCodec(TEST_SECRET)


@pytest.fixture()
def tokens(clock: ManualClock) -> SessionTokenIssuer:
    return SessionTokenIssuer(TEST_SECRET, clock=clock)


@pytest.fixture()
def challenge_engine(
    db_session: Session,
    codec: CodeCodec,
    tokens: SessionTokenIssuer,
    notifier: RecordingNotifier,
    policy: ChallengePolicy,
    clock: ManualClock,
) -> ChallengeEngine:
    return ChallengeEngine(
        db_session,
        codec=codec,
        tokens=tokens,
        notifier=notifier,
        policy=policy,
        clock=clock,
    )


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    clock: ManualClock,
    notifier: RecordingNotifier,
    resolver: FakeResolver,
    policy: ChallengePolicy,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    overrides = {
        app_get_session: _get_session_override,
        get_clock: lambda: clock,
        get_notifier: lambda: notifier,
        get_resolver: lambda: resolver,
        get_policy: lambda: policy,
    }
    app.dependency_overrides.update(overrides)
    try:
        yield
    finally:
        for dependency in overrides:
            app.dependency_overrides.pop(dependency, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client
