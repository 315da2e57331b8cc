# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Generator, Iterator, Mapping
from itertools import count
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-pytest-only")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")

from tribelab_stage.api.v1.dependencies import get_payment_gateway_dep
from tribelab_stage.core.security import create_access_token, hash_password
from tribelab_stage.db.session import Base
from tribelab_stage.db.session import get_db as app_get_session
from tribelab_stage.main import app as fastapi_app
from tribelab_stage.models import Community, CommunityMember, Course, Lesson, Module, Post, User
from tribelab_stage.services.payment_gateway import PaymentGatewayClient, PaymentGatewayConfig

TEST_DB_URL = "sqlite://"
TEST_PASSWORD = "correct-horse-battery"

_USER_COUNTER = count(1)


class FakePaymentGateway(PaymentGatewayClient):
    """In-memory gateway recording the calls made against it."""

    def __init__(self) -> None:
        super().__init__(
            PaymentGatewayConfig(
                base_url="http://gateway.test",
                key_id="rzp_test_key",
                key_secret="test-key-secret",
                webhook_secret="test-webhook-secret",
                community_plan_id="plan_test",
                timeout_seconds=1.0,
            )
        )
        self._ids = count(1)
        self.payment_status = "captured"
        self.orders: list[dict[str, Any]] = []
        self.subscriptions: list[dict[str, Any]] = []
        self.cancelled: list[tuple[str, bool]] = []

    async def create_order(
        self,
        amount: int,
        currency: str,
        *,
        receipt: str,
        notes: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        order = {
            "id": f"order_{next(self._ids)}",
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": dict(notes or {}),
        }
        self.orders.append(order)
        return order

    async def fetch_payment(self, payment_id: str) -> dict[str, Any]:
        return {"id": payment_id, "status": self.payment_status}

    async def create_customer(self, name: str, email: str) -> dict[str, Any]:
        return {"id": f"cust_{next(self._ids)}", "name": name, "email": email}

    async def create_subscription(
        self,
        *,
        plan_id: str,
        customer_id: str,
        total_count: int,
        start_at: int,
        notes: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        subscription = {
            "id": f"sub_{next(self._ids)}",
            "plan_id": plan_id,
            "customer_id": customer_id,
            "total_count": total_count,
            "start_at": start_at,
            "status": "created",
        }
        self.subscriptions.append(subscription)
        return subscription

    async def cancel_subscription(
        self,
        subscription_id: str,
        *,
        cancel_at_cycle_end: bool,
    ) -> dict[str, Any]:
        self.cancelled.append((subscription_id, cancel_at_cycle_end))
        return {"id": subscription_id, "status": "cancelled"}


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
        session.close()

        # Endpoints commit, so every test starts from empty tables.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def gateway(app: FastAPI) -> Iterator[FakePaymentGateway]:
    """Replace the payment gateway dependency with an in-memory fake."""
    fake = FakePaymentGateway()
    app.dependency_overrides[get_payment_gateway_dep] = lambda: fake
    try:
        yield fake
    finally:
        app.dependency_overrides.pop(get_payment_gateway_dep, None)


def make_user(db_session: Session, username: str | None = None, **fields: Any) -> User:
    """Persist a user whose password is ``TEST_PASSWORD``."""
    username = username or f"member_{next(_USER_COUNTER)}"
    user = User(
        username=username,
        email=f"{username.lower()}@example.com",
        password_hash=hash_password(TEST_PASSWORD),
        name=username.replace("_", " ").title(),
        slug=username.lower().replace("_", "-"),
        **fields,
    )
    db_session.add(user)
    db_session.commit()
    return user


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def test_user(db_session: Session) -> User:
    """Primary test user; admin of the ``community`` fixture."""
    return make_user(db_session, "test_user")


@pytest.fixture()
def other_user(db_session: Session) -> User:
    return make_user(db_session, "other_user")


@pytest.fixture()
def auth_token(test_user: User) -> dict[str, str]:
    """Return authorization headers for the primary test user."""
    return auth_headers(test_user)


@pytest.fixture()
def other_auth_token(other_user: User) -> dict[str, str]:
    """Return authorization headers for the secondary test user."""
    return auth_headers(other_user)


@pytest.fixture()
def community(db_session: Session, test_user: User) -> Community:
    """Create a free community administered by ``test_user``."""
    community = Community(
        name="Test Community",
        slug="test-community",
        description="Test community description",
        admin_id=test_user.id,
    )
    db_session.add(community)
    db_session.flush()
    db_session.add(CommunityMember(community_id=community.id, user_id=test_user.id))
    db_session.commit()
    return community


@pytest.fixture()
def member(db_session: Session, community: Community, other_user: User) -> User:
    """``other_user`` as a plain member of ``community``."""
    db_session.add(CommunityMember(community_id=community.id, user_id=other_user.id))
    db_session.commit()
    return other_user


@pytest.fixture()
def test_post(db_session: Session, community: Community, test_user: User) -> Post:
    """Create a baseline post by the community admin."""
    post = Post(
        community_id=community.id,
        author_id=test_user.id,
        title="Welcome",
        content="Test post content",
    )
    db_session.add(post)
    db_session.commit()
    return post


@pytest.fixture()
def course(db_session: Session, community: Community, test_user: User) -> Course:
    """A published course with one module holding two published lessons."""
    course = Course(
        community_id=community.id,
        created_by=test_user.id,
        title="Getting Started",
        description="Basics",
        is_published=True,
    )
    db_session.add(course)
    db_session.flush()
    module = Module(course_id=course.id, title="Module 1", order=0, is_published=True)
    db_session.add(module)
    db_session.flush()
    for index in range(2):
        db_session.add(
            Lesson(
                module_id=module.id,
                course_id=course.id,
                title=f"Lesson {index + 1}",
                content="...",
                order=index,
                is_published=True,
            )
        )
    db_session.commit()
    return course
