"""Conversation state models.

A ``ConversationState`` holds everything one conversation has learned so far.
The models are frozen: the functions in
``spacematch.services.conversation_state`` return updated copies instead of
mutating them, so a state can be serialized, replayed, or compared safely.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from spacematch.domain.enums import (
    ClarificationPriority,
    CommunicationStyle,
    CurrencyFormat,
    EntityKind,
    EntityType,
    MessageRole,
    PreferredUnits,
    ReferenceKind,
    Responsiveness,
    Topic,
)
from spacematch.domain.requirements import BrandRequirements, CamelModel, OwnerRequirements


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StateModel(CamelModel):
    """Frozen camelCase base for state pieces."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


# ---------------------------------------------------------------------------
# Identity and history
# ---------------------------------------------------------------------------


class EntityIdentity(StateModel):
    """Locked classification of the speaker.

    Once ``type`` is set it never changes to the other value; only
    ``confidence``, ``evidence_log`` and ``user_confirmed`` accumulate.
    """

    type: EntityType | None = None
    confidence: float = 0.0
    established_at: int = 0
    evidence_log: list[str] = Field(default_factory=list)
    user_confirmed: bool = False


class Message(StateModel):
    turn: int
    timestamp: datetime = Field(default_factory=utcnow)
    role: MessageRole
    content: str
    extracted_data: dict[str, Any] | None = None
    interpretation: str | None = None
    confidence: float | None = None


# ---------------------------------------------------------------------------
# Requirements accumulator
# ---------------------------------------------------------------------------


class Contradiction(StateModel):
    """An attempted overwrite of an already-set value, kept for inspection."""

    field: str
    old_value: Any = None
    new_value: Any = None
    confidence: float = 0.5
    resolved: bool = False


class RequirementsAccumulator(StateModel):
    brand: BrandRequirements | None = None
    owner: OwnerRequirements | None = None
    confidence: dict[str, float] = Field(default_factory=dict)
    last_updated_fields: list[str] = Field(default_factory=list)
    contradictions: list[Contradiction] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Semantic context
# ---------------------------------------------------------------------------


class Entity(StateModel):
    type: EntityKind
    value: str | float
    confidence: float = 0.8
    mentioned_at: int = 0
    context: str = ""


class Reference(StateModel):
    type: ReferenceKind
    text: str
    refers_to: str | None = None
    turn: int = 0


class Assumption(StateModel):
    """A confident but unconfirmed interpretation that was applied."""

    field: str
    value: Any = None
    confidence: float = 0.0
    should_verify: bool = False


class SemanticContext(StateModel):
    current_topic: Topic = Topic.INITIAL
    recent_entities: list[Entity] = Field(default_factory=list)
    references: list[Reference] = Field(default_factory=list)
    assumptions: list[Assumption] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Profile, search history, clarifications, learning
# ---------------------------------------------------------------------------


class UserProfile(StateModel):
    communication_style: CommunicationStyle = CommunicationStyle.CONVERSATIONAL
    preferred_units: PreferredUnits = PreferredUnits.SQFT
    currency_format: CurrencyFormat = CurrencyFormat.MIXED
    responsiveness: Responsiveness = Responsiveness.MEDIUM
    technical_savviness: float = 0.5


class SearchSnapshot(StateModel):
    query: str
    result_ids: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utcnow)
    filters: dict[str, Any] = Field(default_factory=dict)


class SearchState(StateModel):
    has_searched_before: bool = False
    searches_in_session: int = 0
    last_search_results: SearchSnapshot | None = None
    saved_searches: list[SearchSnapshot] = Field(default_factory=list)
    viewed_properties: list[str] = Field(default_factory=list)
    shortlisted_properties: list[str] = Field(default_factory=list)


class PendingClarification(StateModel):
    id: str
    question: str
    priority: ClarificationPriority = ClarificationPriority.IMPORTANT
    field: str
    possible_values: list[str] | None = None
    context: str = ""


class ResolvedClarification(StateModel):
    field: str
    question: str
    user_answer: str
    timestamp: datetime = Field(default_factory=utcnow)


class Correction(StateModel):
    field: str
    old_value: Any = None
    new_value: Any = None
    timestamp: datetime = Field(default_factory=utcnow)


class TaughtPreference(StateModel):
    preference: str
    value: Any = None
    timestamp: datetime = Field(default_factory=utcnow)


class LearningData(StateModel):
    corrections_made: list[Correction] = Field(default_factory=list)
    preferences_taught: list[TaughtPreference] = Field(default_factory=list)
    disambiguations_resolved: list[ResolvedClarification] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Conversation state
# ---------------------------------------------------------------------------


class ConversationState(StateModel):
    session_id: str
    user_id: str | None = None
    start_time: datetime = Field(default_factory=utcnow)
    last_activity_time: datetime = Field(default_factory=utcnow)
    conversation_length: int = 0
    entity_identity: EntityIdentity = Field(default_factory=EntityIdentity)
    message_history: list[Message] = Field(default_factory=list)
    requirements: RequirementsAccumulator = Field(default_factory=RequirementsAccumulator)
    semantic_context: SemanticContext = Field(default_factory=SemanticContext)
    user_profile: UserProfile = Field(default_factory=UserProfile)
    search_state: SearchState = Field(default_factory=SearchState)
    pending_clarifications: list[PendingClarification] = Field(default_factory=list)
    learning_data: LearningData = Field(default_factory=LearningData)
