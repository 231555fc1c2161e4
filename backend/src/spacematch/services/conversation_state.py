"""State Store: pure update functions over ``ConversationState``.

Every function takes a state and returns a new one; nothing here mutates
its input or touches module-level state. ``serialize_state`` /
``deserialize_state`` convert to and from the JSON form that travels in the
turn contract and in the session store.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from pydantic import ValidationError

from spacematch.domain.enums import (
    ClarificationPriority,
    EntityType,
    MessageRole,
    Topic,
)
from spacematch.domain.requirements import (
    BrandRequirements,
    OwnerRequirements,
    requirements_model,
    to_payload,
)
from spacematch.domain.state import (
    Assumption,
    Contradiction,
    ConversationState,
    Entity,
    Message,
    PendingClarification,
    Reference,
    ResolvedClarification,
    SearchSnapshot,
    utcnow,
)
from spacematch.services.requirements_merge import deep_merge

logger = logging.getLogger(__name__)

MAX_RECENT_ENTITIES = 20
MAX_REFERENCES = 10
MAX_ASSUMPTIONS = 10
MAX_LAST_UPDATED_FIELDS = 10
MAX_SAVED_SEARCHES = 10

# Confidence recorded on a user message with/without attached extraction
EXTRACTED_MESSAGE_CONFIDENCE = 0.8
PLAIN_MESSAGE_CONFIDENCE = 0.5

# Identity counts as established above this confidence
IDENTITY_ESTABLISHED_THRESHOLD = 0.7


# ── Creation and history ─────────────────────────────────────────────────────


def create_conversation_state(session_id: str | None = None, user_id: str | None = None) -> ConversationState:
    """Start a fresh conversation."""
    now = utcnow()
    return ConversationState(
        session_id=session_id or f"session-{uuid.uuid4().hex}",
        user_id=user_id,
        start_time=now,
        last_activity_time=now,
    )


def add_message(
    state: ConversationState,
    role: MessageRole | str,
    content: str,
    extracted_data: dict | None = None,
    interpretation: str | None = None,
) -> ConversationState:
    """Append a message and advance the turn counter."""
    now = utcnow()
    message = Message(
        turn=state.conversation_length + 1,
        timestamp=now,
        role=MessageRole(role),
        content=content,
        extracted_data=extracted_data,
        interpretation=interpretation,
        confidence=EXTRACTED_MESSAGE_CONFIDENCE if extracted_data else PLAIN_MESSAGE_CONFIDENCE,
    )
    return state.model_copy(update={
        "message_history": [*state.message_history, message],
        "conversation_length": state.conversation_length + 1,
        "last_activity_time": now,
    })


def build_transcript(state: ConversationState, limit: int | None = None) -> str:
    """Render history as ``User: ...`` / ``Assistant: ...`` lines."""
    messages = state.message_history[-limit:] if limit else state.message_history
    lines = []
    for message in messages:
        speaker = "User" if message.role == MessageRole.USER else "Assistant"
        lines.append(f"{speaker}: {message.content}")
    return "\n".join(lines)


# ── Identity ─────────────────────────────────────────────────────────────────


def establish_identity(
    state: ConversationState,
    entity_type: EntityType | str,
    confidence: float,
    evidence: str,
    user_confirmed: bool = False,
) -> ConversationState:
    """Lock (or reinforce) the speaker's identity.

    Setting a type different from an already established one is refused:
    the state is returned unchanged and a warning is logged.
    """
    entity_type = EntityType(entity_type)
    identity = state.entity_identity

    if identity.type is not None and identity.type != entity_type:
        logger.warning(
            "[state] Refusing identity change %s -> %s for session %s",
            identity.type.value,
            entity_type.value,
            state.session_id,
        )
        return state

    if identity.type == entity_type:
        updated = identity.model_copy(update={
            "confidence": max(identity.confidence, confidence),
            "evidence_log": [*identity.evidence_log, evidence],
            "user_confirmed": identity.user_confirmed or user_confirmed,
        })
    else:
        updated = identity.model_copy(update={
            "type": entity_type,
            "confidence": confidence,
            "established_at": state.conversation_length + 1,
            "evidence_log": [*identity.evidence_log, evidence],
            "user_confirmed": user_confirmed,
        })
        logger.info(
            "[state] Identity established as %s (confidence=%.2f) for session %s",
            entity_type.value,
            confidence,
            state.session_id,
        )

    return state.model_copy(update={"entity_identity": updated})


def is_identity_established(state: ConversationState) -> bool:
    identity = state.entity_identity
    return identity.type is not None and identity.confidence > IDENTITY_ESTABLISHED_THRESHOLD


# ── Requirements ─────────────────────────────────────────────────────────────


def get_current_requirements(state: ConversationState) -> BrandRequirements | OwnerRequirements | None:
    """Return the requirements for the established side, if any."""
    entity_type = state.entity_identity.type
    if entity_type is None:
        return None
    if entity_type == EntityType.OWNER:
        return state.requirements.owner
    return state.requirements.brand


def _contradiction_key(contradiction: Contradiction) -> tuple[str, str, str]:
    # repr: values may be lists or dicts
    return contradiction.field, repr(contradiction.old_value), repr(contradiction.new_value)


def update_requirements(
    state: ConversationState,
    partial: BrandRequirements | OwnerRequirements | dict | None,
    field_confidence: dict[str, float] | None = None,
) -> ConversationState:
    """Merge newly extracted requirements into the accumulator.

    Existing non-empty values always win; attempted overwrites are appended
    to ``requirements.contradictions``. Requires an established identity.
    """
    entity_type = state.entity_identity.type
    if entity_type is None:
        logger.warning("[state] Cannot update requirements before identity is established")
        return state

    incoming = partial if isinstance(partial, dict) else to_payload(partial)
    if not incoming:
        return state

    field_confidence = field_confidence or {}
    current = get_current_requirements(state)
    result = deep_merge(to_payload(current), incoming)

    model = requirements_model(entity_type.value)
    merged = model.model_validate(result.merged)

    accumulator = state.requirements
    confidence = dict(accumulator.confidence)
    for path in result.updated_fields:
        top_level = path.split(".", 1)[0]
        confidence[path] = field_confidence.get(path, field_confidence.get(top_level, 0.8))

    # The same ignored overwrite repeated on later turns is recorded once
    pending = {_contradiction_key(c) for c in accumulator.contradictions if not c.resolved}
    contradictions = [
        c.model_copy(update={
            "confidence": field_confidence.get(c.field, field_confidence.get(c.field.split(".", 1)[0], 0.5)),
        })
        for c in result.contradictions
        if _contradiction_key(c) not in pending
    ]
    for c in contradictions:
        logger.info("[state] Contradiction on %s: kept %r, ignored %r", c.field, c.old_value, c.new_value)

    updated_accumulator = accumulator.model_copy(update={
        entity_type.value: merged,
        "confidence": confidence,
        "last_updated_fields": [*accumulator.last_updated_fields, *result.updated_fields][-MAX_LAST_UPDATED_FIELDS:],
        "contradictions": [*accumulator.contradictions, *contradictions],
    })
    return state.model_copy(update={"requirements": updated_accumulator})


# ── Semantic context ─────────────────────────────────────────────────────────


def update_semantic_context(
    state: ConversationState,
    topic: Topic | str,
    entities: list[Entity] | None = None,
    references: list[Reference] | None = None,
    assumptions: list[Assumption] | None = None,
) -> ConversationState:
    """Set the current topic and append to the rolling entity/reference windows."""
    context = state.semantic_context
    updated = context.model_copy(update={
        "current_topic": Topic(topic),
        "recent_entities": (
            [*context.recent_entities, *entities][-MAX_RECENT_ENTITIES:] if entities else context.recent_entities
        ),
        "references": (
            [*context.references, *references][-MAX_REFERENCES:] if references else context.references
        ),
        "assumptions": (
            [*context.assumptions, *assumptions][-MAX_ASSUMPTIONS:] if assumptions else context.assumptions
        ),
    })
    return state.model_copy(update={"semantic_context": updated})


# ── Clarifications ───────────────────────────────────────────────────────────


def add_pending_clarification(
    state: ConversationState,
    question: str,
    priority: ClarificationPriority | str,
    field: str,
    context: str,
    possible_values: list[str] | None = None,
) -> ConversationState:
    clarification = PendingClarification(
        id=f"clarify-{uuid.uuid4().hex[:12]}",
        question=question,
        priority=ClarificationPriority(priority),
        field=field,
        possible_values=possible_values,
        context=context,
    )
    return state.model_copy(update={
        "pending_clarifications": [*state.pending_clarifications, clarification],
    })


def resolve_pending_clarification(state: ConversationState, clarification_id: str, answer: str) -> ConversationState:
    """Remove a pending clarification and record the answer in learning data."""
    clarification = next((c for c in state.pending_clarifications if c.id == clarification_id), None)
    if clarification is None:
        return state

    resolution = ResolvedClarification(
        field=clarification.field,
        question=clarification.question,
        user_answer=answer,
        timestamp=utcnow(),
    )
    learning = state.learning_data.model_copy(update={
        "disambiguations_resolved": [*state.learning_data.disambiguations_resolved, resolution],
    })
    return state.model_copy(update={
        "pending_clarifications": [c for c in state.pending_clarifications if c.id != clarification_id],
        "learning_data": learning,
    })


# ── Profile and search history ───────────────────────────────────────────────


def update_user_profile(state: ConversationState, **updates: Any) -> ConversationState:
    return state.model_copy(update={"user_profile": state.user_profile.model_copy(update=updates)})


def record_search(
    state: ConversationState,
    query: str,
    result_ids: list[str],
    filters: dict | None = None,
) -> ConversationState:
    snapshot = SearchSnapshot(query=query, result_ids=result_ids, filters=filters or {}, timestamp=utcnow())
    search_state = state.search_state.model_copy(update={
        "has_searched_before": True,
        "searches_in_session": state.search_state.searches_in_session + 1,
        "last_search_results": snapshot,
        "saved_searches": [*state.search_state.saved_searches, snapshot][-MAX_SAVED_SEARCHES:],
    })
    return state.model_copy(update={"search_state": search_state})


def get_conversation_summary(state: ConversationState) -> str:
    identity = state.entity_identity
    entity_type = identity.type.value if identity.type else "unknown"
    requirements = to_payload(get_current_requirements(state))
    return (
        f"Conversation: {state.conversation_length} turns, Entity: {entity_type}, "
        f"Requirements: {len(requirements)} fields, Confidence: {identity.confidence}"
    )


# ── Serialization ────────────────────────────────────────────────────────────


def serialize_state(state: ConversationState) -> dict:
    """JSON-ready dict: camelCase keys, ISO-8601 timestamps."""
    return state.model_dump(mode="json", by_alias=True)


def deserialize_state(data: dict | None, session_id: str | None = None) -> ConversationState:
    """Rehydrate a serialized state.

    A missing or malformed payload yields a fresh state rather than an error,
    so a corrupted client payload costs the conversation its memory but
    never the turn.
    """
    if not data:
        return create_conversation_state(session_id)
    try:
        return ConversationState.model_validate(data)
    except ValidationError as exc:
        logger.warning("[state] Discarding malformed state payload: %s", exc.errors()[:3])
        return create_conversation_state(session_id)
