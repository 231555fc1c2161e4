"""SQLAlchemy ORM models for SpaceMatch.

SQLite-compatible types only:
- String(36) for UUID primary keys
- JSON for structured data
- DateTime for timestamps
"""

import uuid

from sqlalchemy import Column, DateTime, Integer, JSON, String
from sqlalchemy.sql import func

from spacematch.infra.database import Base


class ConversationSession(Base):
    """Server-side continuation for one conversation.

    The caller only holds the opaque ``token``; the serialized
    ``ConversationState`` lives in ``state``.
    """

    __tablename__ = "conversation_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    token = Column(String(64), unique=True, nullable=False, index=True)
    session_id = Column(String(100), nullable=False, index=True)
    user_id = Column(String(100), nullable=True)
    entity_type = Column(String(10), nullable=True)
    state = Column(JSON, nullable=False)
    turn_count = Column(Integer, default=0)
    status = Column(String(20), default="active")  # active, expired
    expires_at = Column(DateTime)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
