"""Resolution of an unordered user pair to its shared conversation."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tandem_chat.core.errors import PersistenceError, ValidationError
from tandem_chat.db.time import utcnow
from tandem_chat.models import Conversation, ConversationMember
from tandem_chat.models.conversation import pair_key_for

logger = logging.getLogger(__name__)


class ConversationResolver:
    """Finds or lazily creates the private conversation between two users.

    The lookup scans the requester's memberships and returns the first
    conversation the other user also belongs to. Creation stamps the
    conversation with the canonical pair key; the unique constraint on that
    column makes concurrent creators for the same pair converge on a
    single row.
    """

    def resolve(self, db: Session, requester_id: str, other_id: str) -> tuple[str, bool]:
        """Return ``(conversation_id, created)`` for the pair.

        Raises:
            ValidationError: If a user tries to resolve a conversation with themselves.
            PersistenceError: If storage fails.
        """
        if requester_id == other_id:
            raise ValidationError("Cannot open a conversation with yourself")

        try:
            existing = self.find_existing(db, requester_id, other_id)
            if existing is not None:
                return existing, False
            return self._create(db, requester_id, other_id)
        except SQLAlchemyError as err:
            db.rollback()
            logger.error("Conversation lookup failed for %s/%s: %s", requester_id, other_id, err)
            raise PersistenceError() from err

    def find_existing(self, db: Session, requester_id: str, other_id: str) -> str | None:
        """Return the first conversation shared by both users, if any."""
        conversation_ids = db.scalars(
            select(ConversationMember.conversation_id).where(
                ConversationMember.user_id == requester_id
            )
        ).all()

        for conversation_id in conversation_ids:
            if self.is_member(db, conversation_id, other_id):
                return conversation_id
        return None

    @staticmethod
    def is_member(db: Session, conversation_id: str, user_id: str) -> bool:
        """Return True if ``user_id`` belongs to ``conversation_id``."""
        match = db.scalars(
            select(ConversationMember.conversation_id).where(
                ConversationMember.conversation_id == conversation_id,
                ConversationMember.user_id == user_id,
            )
        ).first()
        return match is not None

    def _create(self, db: Session, requester_id: str, other_id: str) -> tuple[str, bool]:
        pair_key = pair_key_for(requester_id, other_id)
        now = utcnow()
        conversation = Conversation(pair_key=pair_key, created_at=now, updated_at=now)
        try:
            db.add(conversation)
            db.flush()
            conversation_id = conversation.id
            db.add_all(
                [
                    ConversationMember(
                        conversation_id=conversation_id,
                        user_id=requester_id,
                        joined_at=now,
                    ),
                    ConversationMember(
                        conversation_id=conversation_id,
                        user_id=other_id,
                        joined_at=now,
                    ),
                ]
            )
            db.commit()
        except IntegrityError:
            # Another request created the pair first.
            db.rollback()
            winner = db.scalars(
                select(Conversation.id).where(Conversation.pair_key == pair_key)
            ).first()
            if winner is None:
                raise
            logger.info("Conversation for pair %s created concurrently; reusing %s", pair_key, winner)
            return winner, False

        logger.info("Created conversation %s for pair %s", conversation_id, pair_key)
        return conversation_id, True


def get_conversation_resolver() -> ConversationResolver:
    """Return a conversation resolver instance."""
    return ConversationResolver()
