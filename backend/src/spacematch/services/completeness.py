"""Requirement completeness: what is still missing and what to ask next.

Pure-function module operating on ``ConversationState`` only. The
orchestrator asks at most one question per turn, taken from
``next_follow_up_question``.
"""

from __future__ import annotations

from spacematch.domain.enums import EntityType, Topic
from spacematch.domain.errors import MissingCriticalField
from spacematch.domain.requirements import BrandRequirements, OwnerRequirements
from spacematch.domain.state import ConversationState
from spacematch.services.conversation_state import get_current_requirements

# Brand searches need at least this share of the present groups filled
SEARCH_COMPLETION_THRESHOLD = 60

# Critical fields in the order they are asked about
BRAND_CRITICAL_FIELDS = ("area", "location", "budget")
OWNER_CRITICAL_FIELDS = ("location", "property_area", "rent")

FOLLOW_UP_QUESTIONS = {
    EntityType.BRAND: {
        "area": "What size space are you looking for? (e.g., 1000 sqft, 1200-1500 sqft)",
        "location": "Which city and area are you interested in? (e.g., Bangalore, Koramangala)",
        "budget": "What's your monthly budget range? (e.g., 2-3 lakhs per month)",
    },
    EntityType.OWNER: {
        "location": "Where is your property located? (city and area)",
        "property_area": "What's the size of your property in sqft?",
        "rent": "What's the monthly rent you're expecting?",
    },
}

FIELD_TOPICS = {
    "area": Topic.AREA,
    "property_area": Topic.AREA,
    "location": Topic.LOCATION,
    "budget": Topic.BUDGET,
    "rent": Topic.BUDGET,
}


def _brand_missing(req: BrandRequirements) -> list[str]:
    missing = []
    area = req.area
    if area is None or not (area.min or area.max or area.preferred):
        missing.append("area")
    if req.location is None or not req.location.city:
        missing.append("location")
    rent = req.budget.monthly_rent if req.budget else None
    if rent is None or not rent.min or not rent.max:
        missing.append("budget")
    return missing


def _owner_missing(req: OwnerRequirements) -> list[str]:
    missing = []
    if req.location is None or not (req.location.city and req.location.area):
        missing.append("location")
    if req.property is None or not req.property.area:
        missing.append("property_area")
    if req.rent_expectations is None or not req.rent_expectations.monthly_rent:
        missing.append("rent")
    return missing


def missing_critical_fields(state: ConversationState) -> list[str]:
    """Critical fields still empty, in asking order.

    Without an established identity the only missing field is
    ``entity_type``.
    """
    entity_type = state.entity_identity.type
    if entity_type is None:
        return ["entity_type"]

    requirements = get_current_requirements(state)
    if entity_type == EntityType.OWNER:
        return _owner_missing(requirements or OwnerRequirements())
    return _brand_missing(requirements or BrandRequirements())


def completion_percentage(state: ConversationState) -> int:
    """Share (0-100) of the mentioned requirement groups that are filled in."""
    entity_type = state.entity_identity.type
    requirements = get_current_requirements(state)
    if entity_type is None or requirements is None:
        return 0

    checks: list[bool] = []
    if entity_type == EntityType.BRAND:
        if requirements.area is not None:
            checks.append(bool(requirements.area.min or requirements.area.max or requirements.area.preferred))
        if requirements.location is not None:
            checks.append(bool(requirements.location.city))
        if requirements.property_type is not None:
            checks.append(bool(requirements.property_type.primary))
        if requirements.budget is not None:
            rent = requirements.budget.monthly_rent
            checks.append(bool(rent and (rent.min or rent.max)))
    else:
        if requirements.property is not None:
            checks.append(bool(requirements.property.area))
        if requirements.location is not None:
            checks.append(bool(requirements.location.city and requirements.location.area))
        if requirements.rent_expectations is not None:
            checks.append(bool(requirements.rent_expectations.monthly_rent))
        if requirements.property is not None and requirements.property.type:
            checks.append(True)

    if not checks:
        return 0
    return round(sum(checks) / len(checks) * 100)


def next_follow_up_question(state: ConversationState) -> str | None:
    """The single highest-priority question to ask, or None when complete."""
    missing = missing_critical_fields(state)
    if not missing or missing == ["entity_type"]:
        return None
    questions = FOLLOW_UP_QUESTIONS[state.entity_identity.type]
    return questions[missing[0]]


def topic_for_field(field: str) -> Topic:
    return FIELD_TOPICS.get(field, Topic.GENERAL)


def is_ready_to_search(state: ConversationState) -> bool:
    if state.entity_identity.type != EntityType.BRAND:
        return False
    return (
        not missing_critical_fields(state)
        and completion_percentage(state) >= SEARCH_COMPLETION_THRESHOLD
    )


def is_ready_to_redirect(state: ConversationState) -> bool:
    if state.entity_identity.type != EntityType.OWNER:
        return False
    return not missing_critical_fields(state)


def require_complete(state: ConversationState) -> None:
    """Raise ``MissingCriticalField`` for the first field still missing."""
    missing = missing_critical_fields(state)
    if missing:
        raise MissingCriticalField(missing[0])
