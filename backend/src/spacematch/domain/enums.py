"""Domain enumerations for SpaceMatch.

All enums use the (str, Enum) pattern to ensure JSON serialization compatibility.
"""

from enum import Enum


class EntityType(str, Enum):
    """Which side of the marketplace the speaker represents."""

    BRAND = "brand"
    OWNER = "owner"


class ClassificationResult(str, Enum):
    """Output of the entity classifier."""

    BRAND = "brand"
    OWNER = "owner"
    NEEDS_CLARIFICATION = "needs_clarification"


class ConversationPhase(str, Enum):
    """Per-turn orchestrator phase."""

    NEEDS_ENTITY_TYPE = "needs_entity_type"
    COLLECTING_REQUIREMENTS = "collecting_requirements"
    READY_TO_SEARCH = "ready_to_search"
    READY_TO_REDIRECT = "ready_to_redirect"
    RESPONDING = "responding"


class MessageRole(str, Enum):
    """Author of a conversation message."""

    USER = "user"
    ASSISTANT = "assistant"


class Topic(str, Enum):
    """What the conversation is currently about.

    Used to read bare numbers in context ("5" while discussing budget).
    """

    INITIAL = "initial"
    AREA = "discussing area"
    BUDGET = "discussing budget"
    DEPOSIT = "discussing deposit"
    LOCATION = "discussing location"
    PROPERTY_TYPE = "discussing property type"
    GENERAL = "general discussion"


class EntityKind(str, Enum):
    """Kind of a spotted entity in the semantic context."""

    LOCATION = "location"
    NUMBER = "number"
    BRAND = "brand"
    PROPERTY_TYPE = "property_type"
    OTHER = "other"


class ReferenceKind(str, Enum):
    """Kind of a referring expression."""

    PRONOUN = "pronoun"
    DEMONSTRATIVE = "demonstrative"
    COMPARATIVE = "comparative"


class NumberInterpretation(str, Enum):
    """What a bare number was resolved to."""

    AREA = "area"
    CURRENCY = "currency"
    DEPOSIT = "deposit"
    UNKNOWN = "unknown"


class ClarificationPriority(str, Enum):
    """Urgency of a pending clarification."""

    CRITICAL = "critical"
    IMPORTANT = "important"
    OPTIONAL = "optional"


class RecommendationTier(str, Enum):
    """Textual tier derived from the final match score."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"


class CommunicationStyle(str, Enum):
    """How the user tends to phrase things."""

    CONCISE = "concise"
    DETAILED = "detailed"
    CONVERSATIONAL = "conversational"


class PreferredUnits(str, Enum):
    """Area unit the user prefers."""

    SQFT = "sqft"
    SQM = "sqm"


class CurrencyFormat(str, Enum):
    """How the user writes money amounts."""

    LAKHS = "lakhs"
    THOUSANDS = "thousands"
    EXACT = "exact"
    MIXED = "mixed"


class Responsiveness(str, Enum):
    """How quickly the user answers follow-up questions."""

    FAST = "fast"
    MEDIUM = "medium"
    SLOW = "slow"


class SessionStatus(str, Enum):
    """Lifecycle status of a stored conversation session."""

    ACTIVE = "active"
    EXPIRED = "expired"
