"""Pydantic v2 schemas for API request/response validation."""

from typing import Any, Literal

from pydantic import Field

from spacematch.domain.enums import ConversationPhase, EntityType
from spacematch.domain.requirements import CamelModel


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(CamelModel):
    """Health check response."""

    status: str
    service: str


# ---------------------------------------------------------------------------
# Candidate listings
# ---------------------------------------------------------------------------


class ListingFilters(CamelModel):
    """Filter record sent to the candidate-listing source."""

    city: str | None = None
    property_type: str | None = None
    min_price: float | None = None
    max_price: float | None = None
    min_size: float | None = None
    max_size: float | None = None


class ListingRecord(CamelModel):
    """One candidate listing as returned by the listing source."""

    id: str
    title: str = ""
    address: str = ""
    city: str = ""
    size: float = 0
    price: float = 0
    property_type: str = ""
    parking: bool = False
    is_featured: bool = False
    security_deposit: float | None = None
    amenities: list[str] = Field(default_factory=list)
    daily_footfall: int | None = None
    nearby_competitors: int | None = None


# ---------------------------------------------------------------------------
# Scoring output
# ---------------------------------------------------------------------------


class SubScore(CamelModel):
    """One side of the dual score (BFI or PFI)."""

    overall: float
    confidence: float
    factors: dict[str, float]


class SubScores(CamelModel):
    bfi: SubScore
    pfi: SubScore


class FinancialSummary(CamelModel):
    monthly_rent: float
    deposit: float
    estimated_fitout: float
    total_initial_investment: float


class ScoredMatch(CamelModel):
    listing_id: str
    final_score: int
    confidence: float
    recommendation: str
    sub_scores: SubScores
    strengths: list[str] = Field(default_factory=list)
    considerations: list[str] = Field(default_factory=list)
    financial_summary: FinancialSummary
    listing: ListingRecord


class MatchSummary(CamelModel):
    total_matches: int = 0
    showing_top: int = 0
    average_match_score: int = 0
    search_completeness: int = 0


# ---------------------------------------------------------------------------
# Turn contract
# ---------------------------------------------------------------------------


class TurnContext(CamelModel):
    """Caller-held context from the previous turn."""

    previous_queries: list[str] = Field(default_factory=list)
    extracted_requirements: dict[str, Any] = Field(default_factory=dict)
    confirmed_entity_type: EntityType | None = None
    full_state: dict[str, Any] | None = None


class SearchTurnRequest(CamelModel):
    """One user turn."""

    query: str
    conversation_history: str | None = None
    user_id: str | None = None
    entity_type: Literal["brand", "owner", "auto"] = "auto"
    context: TurnContext | None = None
    session_token: str | None = None


class PendingClarificationOut(CamelModel):
    id: str
    question: str
    field: str
    options: list[str] = Field(default_factory=list)


class SearchTurnResponse(CamelModel):
    """Reply for one turn, including the state to carry into the next."""

    message: str
    matches: list[ScoredMatch] = Field(default_factory=list)
    summary: MatchSummary = Field(default_factory=MatchSummary)
    extracted_requirements: dict[str, Any] = Field(default_factory=dict)
    confirmed_entity_type: EntityType | None = None
    full_state: dict[str, Any] = Field(default_factory=dict)
    phase: ConversationPhase = ConversationPhase.COLLECTING_REQUIREMENTS
    ready_to_redirect: bool | None = None
    collected_details: dict[str, Any] | None = None
    pending_clarification: PendingClarificationOut | None = None
    session_token: str | None = None
