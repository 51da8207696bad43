# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from contextlib import AbstractContextManager, contextmanager
from datetime import datetime
from itertools import count

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tandem_chat.core.security import hash_credential
from tandem_chat.db.session import Base
from tandem_chat.db.session import get_db as app_get_session
from tandem_chat.db.time import utcnow
from tandem_chat.main import app as fastapi_app
from tandem_chat.models import Conversation, ConversationMember, Message, User
from tandem_chat.models.conversation import pair_key_for
from tandem_chat.services.auth import AuthGateway
from tandem_chat.services.relay import MessageRelay
from tandem_chat.services.sessions import SessionRegistry

TEST_DB_URL = "sqlite://"
TEST_PASSWORD = "correct horse battery staple"

_USER_COUNTER = count(1)


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
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    session.begin_nested()

    @event.listens_for(session, "after_transaction_end")
    def restart_savepoint(sess: Session, trans) -> None:  # pragma: no cover - SQLAlchemy internals
        if trans.nested and not getattr(trans._parent, "nested", False):
            session.begin_nested()

    try:
        yield session
    finally:
        event.remove(session, "after_transaction_end", restart_savepoint)
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


def shared_session_scope(session: Session) -> Callable[[], AbstractContextManager[Session]]:
    """Return a session scope that hands out the test session without closing it."""

    @contextmanager
    def _scope() -> Iterator[Session]:
        yield session

    return _scope


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
def gateway() -> AuthGateway:
    return AuthGateway()


@pytest.fixture(autouse=True)
def registry(app: FastAPI, db_session: Session, gateway: AuthGateway) -> Iterator[SessionRegistry]:
    """Give every test its own presence registry and relay bound to the test session."""
    original = (app.state.registry, app.state.relay)
    fresh = SessionRegistry()
    app.state.registry = fresh
    app.state.relay = MessageRelay(fresh, gateway, shared_session_scope(db_session))
    try:
        yield fresh
    finally:
        app.state.registry, app.state.relay = original


@pytest.fixture()
def relay(app: FastAPI) -> MessageRelay:
    return app.state.relay


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory persisting users with a known password."""

    def _make_user(username: str | None = None, password: str = TEST_PASSWORD) -> User:
        name = username or f"user{next(_USER_COUNTER)}"
        user = User(
            username=name,
            email=f"{name}@example.com",
            password_hash=hash_credential(password, rounds=4),
        )
        db_session.add(user)
        db_session.flush()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def alice(make_user: Callable[..., User]) -> User:
    return make_user("alice")


@pytest.fixture()
def bob(make_user: Callable[..., User]) -> User:
    return make_user("bob")


@pytest.fixture()
def alice_token(gateway: AuthGateway, alice: User) -> str:
    return gateway.issue_token(alice.id, alice.username)


@pytest.fixture()
def bob_token(gateway: AuthGateway, bob: User) -> str:
    return gateway.issue_token(bob.id, bob.username)


@pytest.fixture()
def alice_headers(alice_token: str) -> dict[str, str]:
    """Return authorization headers for alice."""
    return {"Authorization": f"Bearer {alice_token}"}


@pytest.fixture()
def bob_headers(bob_token: str) -> dict[str, str]:
    """Return authorization headers for bob."""
    return {"Authorization": f"Bearer {bob_token}"}


@pytest.fixture()
def conversation(db_session: Session, alice: User, bob: User) -> Conversation:
    """Create the alice/bob conversation with both memberships."""
    now = utcnow()
    conv = Conversation(pair_key=pair_key_for(alice.id, bob.id), created_at=now, updated_at=now)
    db_session.add(conv)
    db_session.flush()
    db_session.add_all(
        [
            ConversationMember(conversation_id=conv.id, user_id=alice.id, joined_at=now),
            ConversationMember(conversation_id=conv.id, user_id=bob.id, joined_at=now),
        ]
    )
    db_session.flush()
    return conv


@pytest.fixture()
def add_message(db_session: Session) -> Callable[..., Message]:
    """Return a factory inserting a message with an explicit timestamp."""

    def _add_message(conv: Conversation, sender: User, body: str, created_at: datetime) -> Message:
        message = Message(
            conversation_id=conv.id,
            from_user_id=sender.id,
            body=body,
            created_at=created_at,
        )
        db_session.add(message)
        db_session.flush()
        return message

    return _add_message
