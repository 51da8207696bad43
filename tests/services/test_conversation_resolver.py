# tests/services/test_conversation_resolver.py
"""Tests for mapping a user pair onto its conversation."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from tandem_chat.core.errors import PersistenceError, ValidationError
from tandem_chat.models import Conversation, ConversationMember
from tandem_chat.models.conversation import pair_key_for
from tandem_chat.services.conversations import ConversationResolver


def test_pair_key_is_order_independent() -> None:
    assert pair_key_for("b", "a") == pair_key_for("a", "b") == "a:b"


def test_resolve_creates_then_reuses(db_session, alice, bob) -> None:
    resolver = ConversationResolver()

    conversation_id, created = resolver.resolve(db_session, alice.id, bob.id)
    assert created is True

    again, created_again = resolver.resolve(db_session, bob.id, alice.id)
    assert created_again is False
    assert again == conversation_id

    conversation = db_session.get(Conversation, conversation_id)
    assert conversation.pair_key == pair_key_for(alice.id, bob.id)


def test_resolve_ignores_conversations_without_the_peer(db_session, make_user, alice, bob) -> None:
    carol = make_user("carol")
    resolver = ConversationResolver()

    with_carol, _ = resolver.resolve(db_session, alice.id, carol.id)
    with_bob, created = resolver.resolve(db_session, alice.id, bob.id)

    assert created is True
    assert with_bob != with_carol
    assert resolver.is_member(db_session, with_bob, bob.id)
    assert not resolver.is_member(db_session, with_carol, bob.id)


def test_resolve_finds_legacy_conversation_without_pair_key(db_session, alice, bob) -> None:
    """Memberships alone identify the pair; the pair key is not required for lookup."""
    legacy = Conversation()
    db_session.add(legacy)
    db_session.flush()
    db_session.add_all(
        [
            ConversationMember(conversation_id=legacy.id, user_id=alice.id),
            ConversationMember(conversation_id=legacy.id, user_id=bob.id),
        ]
    )
    db_session.flush()

    conversation_id, created = ConversationResolver().resolve(db_session, bob.id, alice.id)
    assert created is False
    assert conversation_id == legacy.id


def test_resolve_with_self_is_rejected(db_session, alice) -> None:
    with pytest.raises(ValidationError):
        ConversationResolver().resolve(db_session, alice.id, alice.id)
    assert db_session.query(Conversation).count() == 0


def test_storage_failure_becomes_persistence_error() -> None:
    db = MagicMock()
    db.scalars.side_effect = OperationalError("SELECT", {}, Exception("database is locked"))

    with pytest.raises(PersistenceError):
        ConversationResolver().resolve(db, "alice", "bob")
    db.rollback.assert_called_once()


def test_concurrent_creation_converges_on_existing_pair() -> None:
    """Losing the unique pair-key race returns the winner's conversation."""
    db = MagicMock()
    db.scalars.return_value.all.return_value = []
    db.scalars.return_value.first.return_value = "winner-id"
    db.commit.side_effect = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

    conversation_id, created = ConversationResolver().resolve(db, "alice", "bob")

    assert conversation_id == "winner-id"
    assert created is False
    db.rollback.assert_called_once()
