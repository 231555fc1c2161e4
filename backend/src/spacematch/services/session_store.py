"""Session Store: keyed server-side storage for conversation state.

The caller keeps only an opaque token between turns. Concurrent turns for
the same token are last-write-wins.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from spacematch.domain.enums import SessionStatus
from spacematch.domain.models import ConversationSession
from spacematch.domain.state import ConversationState
from spacematch.services.conversation_state import deserialize_state, serialize_state

logger = logging.getLogger(__name__)

# Default lifetime of a session after its last write
SESSION_TTL_HOURS = 48


def _now() -> datetime:
    # SQLite stores naive datetimes; keep everything naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SessionStore:
    """Loads and saves ``ConversationState`` by session token."""

    def __init__(self, db: AsyncSession, ttl_hours: int = SESSION_TTL_HOURS):
        self.db = db
        self.ttl = timedelta(hours=ttl_hours)

    async def _get(self, token: str) -> ConversationSession | None:
        result = await self.db.execute(
            select(ConversationSession).where(ConversationSession.token == token)
        )
        return result.scalar_one_or_none()

    async def load(self, token: str | None) -> ConversationState | None:
        """Return the stored state, or None if unknown, expired or closed."""
        if not token:
            return None
        record = await self._get(token)
        if not record:
            return None

        if record.status != SessionStatus.ACTIVE.value:
            logger.warning("[session_store] Session %s... is %s", token[:8], record.status)
            return None

        if record.expires_at:
            expires = record.expires_at
            if expires.tzinfo is not None:
                expires = expires.astimezone(timezone.utc).replace(tzinfo=None)
            if expires < _now():
                logger.warning("[session_store] Session %s... expired", token[:8])
                record.status = SessionStatus.EXPIRED.value
                await self.db.flush()
                return None

        return deserialize_state(record.state, session_id=record.session_id)

    async def save(self, state: ConversationState, token: str | None = None) -> str:
        """Persist ``state`` and return its token.

        An unknown or missing token starts a new session with a fresh token.
        """
        record = await self._get(token) if token else None
        entity_type = state.entity_identity.type.value if state.entity_identity.type else None

        if record is None or record.status != SessionStatus.ACTIVE.value:
            record = ConversationSession(
                token=secrets.token_urlsafe(48),  # ~64 chars
                session_id=state.session_id,
                user_id=state.user_id,
                status=SessionStatus.ACTIVE.value,
            )
            self.db.add(record)
            logger.info("[session_store] New session %s... for %s", record.token[:8], state.session_id)

        record.state = serialize_state(state)
        record.entity_type = entity_type
        record.turn_count = state.conversation_length
        record.expires_at = _now() + self.ttl
        await self.db.flush()
        return record.token

    async def expire(self, token: str) -> bool:
        """Close a session. Returns False if the token is unknown."""
        record = await self._get(token)
        if not record:
            return False
        record.status = SessionStatus.EXPIRED.value
        await self.db.flush()
        logger.info("[session_store] Expired session %s...", token[:8])
        return True

    async def expire_stale(self) -> int:
        """Mark every active session past its expiry as expired."""
        result = await self.db.execute(
            update(ConversationSession)
            .where(
                ConversationSession.status == SessionStatus.ACTIVE.value,
                ConversationSession.expires_at < _now(),
            )
            .values(status=SessionStatus.EXPIRED.value)
        )
        await self.db.flush()
        if result.rowcount:
            logger.info("[session_store] Expired %d stale sessions", result.rowcount)
        return result.rowcount or 0
