"""Disambiguation Engine: bare numbers and referring expressions.

Pure-function module. NO LLM, NO database access. Everything is computed
from the utterance and the ``ConversationState`` passed in, so identical
inputs always produce identical results.

Number resolution order (first confident step wins):
    1. Explicit unit tokens in the utterance (sqft, lakh, ₹, deposit)
    2. Current discussion topic
    3. Unit of the most recent number entity
    4. Magnitude heuristics
    5. Unknown → three canonical phrasings offered
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from spacematch.domain.enums import EntityKind, NumberInterpretation, ReferenceKind, Topic
from spacematch.domain.state import ConversationState, Entity, Reference

LAKH = 100_000
CRORE = 10_000_000

# Deposits up to this are read as a number of months of rent
MAX_DEPOSIT_MONTHS = 24

# ── Confidence levels ────────────────────────────────────────────────────────

EXPLICIT_UNIT_CONFIDENCE = 0.95
DEPOSIT_KEYWORD_CONFIDENCE = 0.90
TOPIC_AREA_CONFIDENCE = 0.85
TOPIC_DEPOSIT_CONFIDENCE = 0.80
TOPIC_LARGE_BUDGET_CONFIDENCE = 0.80
TOPIC_LAKHS_BUDGET_CONFIDENCE = 0.75
TOPIC_SMALL_BUDGET_CONFIDENCE = 0.70
RECENT_ENTITY_CONFIDENCE = 0.75
MAGNITUDE_AREA_CONFIDENCE = 0.75
MAGNITUDE_LAKHS_CONFIDENCE = 0.70
MAGNITUDE_CURRENCY_CONFIDENCE = 0.60
UNKNOWN_CONFIDENCE = 0.50

# ── Patterns ─────────────────────────────────────────────────────────────────

AREA_UNIT_PATTERN = re.compile(r'\b(?:sq\.?\s*ft|sqft|sft|square\s*f(?:ee|oo)t|sq\s*feet)\b', re.IGNORECASE)
LAKH_UNIT_PATTERN = re.compile(r'\d\s*(?:lakhs?|lacs?)\b|\b(?:lakhs?|lacs?)\b', re.IGNORECASE)
CRORE_UNIT_PATTERN = re.compile(r'\b(?:crores?|cr)\b', re.IGNORECASE)
CURRENCY_PATTERN = re.compile(r'₹|\brs\.?(?=\s*\d)|\brupees?\b|\binr\b', re.IGNORECASE)
DEPOSIT_PATTERN = re.compile(r'\b(?:deposit|advance)\b', re.IGNORECASE)

# "500", "1,500", "about 2000", "~5"
BARE_NUMBER_PATTERN = re.compile(
    r'^\s*(?:about|around|approx\.?|approximately|roughly|~)?\s*(\d{1,3}(?:,\d{2,3})+|\d+(?:\.\d+)?)\s*[.!?]?\s*$',
    re.IGNORECASE,
)

ENTITY_AREA_MARKERS = ("sqft", "sq ft", "square", "area", "size", "sft")
ENTITY_MONEY_MARKERS = ("lakh", "lac", "rent", "budget", "₹", "rs", "k")

LOCATION_ENTITY_PATTERNS = [
    re.compile(r'(?:\bin|\bon|\bat|location|address)[\s:]+([A-Z][a-zA-Z]+(?:\s+[A-Z][a-zA-Z]+)*)'),
    re.compile(r'\b([A-Z][a-zA-Z]*(?:\s+[A-Z][a-zA-Z]*)*\s+(?:Road|Street|Layout|Nagar|Block|Sector))\b'),
]

NUMBER_ENTITY_PATTERNS = [
    re.compile(r'(\d+(?:\.\d+)?)\s*(sq\.?\s*ft|sqft|sft|square\s*feet)', re.IGNORECASE),
    re.compile(r'(\d+(?:\.\d+)?)\s*(lakhs?|lacs?)\b', re.IGNORECASE),
    re.compile(r'(\d+(?:\.\d+)?)\s*(k)\b(?!\s*(?:sq|sqft|sft))', re.IGNORECASE),
]
PLAIN_NUMBER_PATTERN = re.compile(r'(?<![\w.])(\d{1,3}(?:,\d{2,3})+|\d+)(?![\w.,])')

PRONOUNS = ("it", "that", "this")
# Subject use ("it's in Koramangala") is a statement, not a reference
PRONOUN_PATTERN = re.compile(
    r"\b(it|that|this)\b(?!\s*(?:'s|’s|is\b|was\b|has\b|will\b|would\b|should\b|can\b))",
    re.IGNORECASE,
)
SAME_PATTERN = re.compile(
    r'\bsame\s+(location|area|place|locality|size|sqft|budget|rent|city)\b',
    re.IGNORECASE,
)

TOPIC_KEYWORDS = [
    (Topic.AREA, ("size", "sqft", "sq ft", "area", "square feet")),
    (Topic.DEPOSIT, ("deposit", "advance")),
    (Topic.BUDGET, ("rent", "budget", "price", "lakh", "cost")),
    (Topic.LOCATION, ("location", "address", "where", "locality")),
    (Topic.PROPERTY_TYPE, ("type", "property", "retail", "restaurant", "kiosk", "qsr")),
]


@dataclass
class DisambiguationResult:
    type: NumberInterpretation
    value: float
    confidence: float
    needs_clarification: bool = False
    clarification_options: list[str] = field(default_factory=list)
    reason: str = ""

    @property
    def phrasing(self) -> str:
        """Unambiguous rewrite of the number for downstream extraction."""
        if self.type == NumberInterpretation.AREA:
            return f"{self.value:g} sqft"
        if self.type == NumberInterpretation.DEPOSIT:
            if self.value <= MAX_DEPOSIT_MONTHS:
                return f"deposit of {self.value:g} months"
            return f"deposit of ₹{self.value:.0f}"
        return f"₹{self.value:.0f} per month"


# ── Formatting helpers ───────────────────────────────────────────────────────


def format_inr(amount: float) -> str:
    """Indian digit grouping: 500000 → '5,00,000'."""
    digits = f"{int(round(amount))}"
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def _area_option(n: float) -> str:
    return f"{n:g} sqft (area)"


def _lakhs_option(n: float) -> str:
    return f"{n:g} lakhs per month (₹{format_inr(n * LAKH)})"


def _exact_option(n: float) -> str:
    return f"₹{format_inr(n)} per month"


def parse_number(raw: str | float) -> float:
    if isinstance(raw, (int, float)):
        return float(raw)
    return float(re.sub(r'[,\s]', '', raw))


def find_bare_number(query: str) -> float | None:
    """Return the number if the whole utterance is just a number."""
    match = BARE_NUMBER_PATTERN.match(query or "")
    if not match:
        return None
    return parse_number(match.group(1))


def _latest_user_text(state: ConversationState) -> str:
    for message in reversed(state.message_history):
        if message.role.value == "user":
            return message.content
    return ""


# ── Number disambiguation ────────────────────────────────────────────────────


def _from_explicit_unit(n: float, text: str) -> DisambiguationResult | None:
    if DEPOSIT_PATTERN.search(text):
        return DisambiguationResult(
            NumberInterpretation.DEPOSIT, n * LAKH if LAKH_UNIT_PATTERN.search(text) else n,
            DEPOSIT_KEYWORD_CONFIDENCE, reason="deposit keyword",
        )
    if AREA_UNIT_PATTERN.search(text):
        return DisambiguationResult(NumberInterpretation.AREA, n, EXPLICIT_UNIT_CONFIDENCE, reason="area unit")
    if LAKH_UNIT_PATTERN.search(text):
        return DisambiguationResult(NumberInterpretation.CURRENCY, n * LAKH, EXPLICIT_UNIT_CONFIDENCE, reason="lakh unit")
    if CRORE_UNIT_PATTERN.search(text):
        return DisambiguationResult(NumberInterpretation.CURRENCY, n * CRORE, EXPLICIT_UNIT_CONFIDENCE, reason="crore unit")
    if CURRENCY_PATTERN.search(text):
        return DisambiguationResult(NumberInterpretation.CURRENCY, n, EXPLICIT_UNIT_CONFIDENCE, reason="currency marker")
    return None


def _from_topic(n: float, topic: Topic) -> DisambiguationResult | None:
    if topic == Topic.AREA:
        return DisambiguationResult(NumberInterpretation.AREA, n, TOPIC_AREA_CONFIDENCE, reason="topic: area")
    if topic == Topic.DEPOSIT:
        return DisambiguationResult(NumberInterpretation.DEPOSIT, n, TOPIC_DEPOSIT_CONFIDENCE, reason="topic: deposit")
    if topic != Topic.BUDGET:
        return None

    if n <= 50:
        return DisambiguationResult(
            NumberInterpretation.CURRENCY, n * LAKH, TOPIC_LAKHS_BUDGET_CONFIDENCE,
            needs_clarification=True,
            clarification_options=[_lakhs_option(n), _exact_option(n)],
            reason="topic: budget, small value",
        )
    if n < 100:
        return DisambiguationResult(
            NumberInterpretation.CURRENCY, n, TOPIC_SMALL_BUDGET_CONFIDENCE,
            needs_clarification=True,
            clarification_options=[_lakhs_option(n), _exact_option(n)],
            reason="topic: budget, small value",
        )
    if n < 1000:
        return DisambiguationResult(
            NumberInterpretation.CURRENCY, n, TOPIC_SMALL_BUDGET_CONFIDENCE, reason="topic: budget",
        )
    return DisambiguationResult(
        NumberInterpretation.CURRENCY, n, TOPIC_LARGE_BUDGET_CONFIDENCE, reason="topic: budget",
    )


def _from_recent_entity(n: float, state: ConversationState) -> DisambiguationResult | None:
    numbers = [e for e in state.semantic_context.recent_entities if e.type == EntityKind.NUMBER]
    if not numbers:
        return None
    last = str(numbers[-1].value).lower()
    if any(marker in last for marker in ENTITY_AREA_MARKERS):
        return DisambiguationResult(NumberInterpretation.AREA, n, RECENT_ENTITY_CONFIDENCE, reason="previous number was an area")
    if any(marker in last for marker in ENTITY_MONEY_MARKERS):
        in_lakhs = ("lakh" in last or "lac" in last) and n <= 50
        return DisambiguationResult(
            NumberInterpretation.CURRENCY, n * LAKH if in_lakhs else n, RECENT_ENTITY_CONFIDENCE,
            reason="previous number was an amount",
        )
    return None


def _from_magnitude(n: float) -> DisambiguationResult:
    if 1 <= n <= 50:
        return DisambiguationResult(
            NumberInterpretation.CURRENCY, n * LAKH, MAGNITUDE_LAKHS_CONFIDENCE,
            needs_clarification=True,
            clarification_options=[_lakhs_option(n), _area_option(n)],
            reason="magnitude: lakhs or area",
        )
    if 100 <= n < 10_000:
        return DisambiguationResult(NumberInterpretation.AREA, n, MAGNITUDE_AREA_CONFIDENCE, reason="magnitude: area")
    if 10_000 <= n < 1_000_000:
        return DisambiguationResult(
            NumberInterpretation.CURRENCY, n, MAGNITUDE_CURRENCY_CONFIDENCE,
            needs_clarification=True,
            clarification_options=[_exact_option(n), _area_option(n)],
            reason="magnitude: amount or large area",
        )
    return DisambiguationResult(
        NumberInterpretation.UNKNOWN, n, UNKNOWN_CONFIDENCE,
        needs_clarification=True,
        clarification_options=[_area_option(n), _lakhs_option(n), _exact_option(n)],
        reason="unknown",
    )


def disambiguate_number(
    raw_number: str | float,
    state: ConversationState,
    utterance: str | None = None,
) -> DisambiguationResult:
    """Classify a number as area, currency, or deposit.

    ``utterance`` defaults to the latest user message in ``state``.
    """
    n = parse_number(raw_number)
    text = utterance if utterance is not None else _latest_user_text(state)

    return (
        _from_explicit_unit(n, text)
        or _from_topic(n, state.semantic_context.current_topic)
        or _from_recent_entity(n, state)
        or _from_magnitude(n)
    )


def generate_clarification_question(number: str | float, options: list[str]) -> str:
    lines = "\n".join(f"{i}. {option}" for i, option in enumerate(options, start=1))
    return f"Just to clarify, did you mean:\n\n{lines}\n\nWhich one?"


def pick_option(answer: str, options: list[str]) -> str | None:
    """Map a reply ("2", "option 2", or the option text) to a chosen option."""
    answer = (answer or "").strip().lower()
    match = re.match(r'^(?:option\s*)?(\d+)[.)]?$', answer)
    if match:
        index = int(match.group(1)) - 1
        return options[index] if 0 <= index < len(options) else None
    for option in options:
        if answer and (answer in option.lower() or option.lower() in answer):
            return option
    return None


# ── References ───────────────────────────────────────────────────────────────


def _last_entity(state: ConversationState, kind: EntityKind, markers: tuple[str, ...] = ()) -> str | None:
    for entity in reversed(state.semantic_context.recent_entities):
        if entity.type != kind:
            continue
        haystack = f"{entity.value} {entity.context}".lower()
        if not markers or any(m in haystack for m in markers):
            return str(entity.value)
    return None


def resolve_reference(token: str, state: ConversationState) -> str | None:
    """Resolve "it"/"that"/"this" or "same <noun>" to a recent entity value.

    Returns None when nothing qualifies; callers leave the token as is.
    """
    lowered = token.lower().strip()
    topic = state.semantic_context.current_topic

    if lowered in PRONOUNS:
        if topic == Topic.BUDGET:
            return _last_entity(state, EntityKind.NUMBER, ("rent", "budget", "lakh", "lac", "₹"))
        if topic == Topic.AREA:
            return _last_entity(state, EntityKind.NUMBER, ("sqft", "sq ft", "area", "size"))
        if topic == Topic.LOCATION:
            return _last_entity(state, EntityKind.LOCATION)
        return None

    same = SAME_PATTERN.search(lowered)
    if same:
        noun = same.group(1)
        if noun in ("location", "area", "place", "locality", "city"):
            return _last_entity(state, EntityKind.LOCATION)
        if noun in ("size", "sqft"):
            return _last_entity(state, EntityKind.NUMBER, ("sqft", "sq ft", "area", "size"))
        if noun in ("budget", "rent"):
            return _last_entity(state, EntityKind.NUMBER, ("rent", "budget", "lakh", "lac", "₹"))
    return None


def find_references(query: str) -> list[tuple[ReferenceKind, str]]:
    """Referring expressions in ``query``, "same <noun>" forms first.

    Bare pronouns only count when the utterance carries no number of its own.
    """
    found = [(ReferenceKind.COMPARATIVE, m.group(0)) for m in SAME_PATTERN.finditer(query)]
    if not re.search(r'\d', query):
        for match in PRONOUN_PATTERN.finditer(query):
            word = match.group(1)
            found.append((ReferenceKind.PRONOUN if word.lower() == "it" else ReferenceKind.DEMONSTRATIVE, word))
    return found


def apply_reference_resolution(query: str, state: ConversationState) -> tuple[str, list[Reference]]:
    """Rewrite resolvable references in ``query``."""
    turn = state.conversation_length
    references: list[Reference] = []
    rewritten = query

    for kind, text in find_references(query):
        resolved = resolve_reference(text, state)
        references.append(Reference(type=kind, text=text, refers_to=resolved, turn=turn))
        if resolved:
            rewritten = re.sub(r'\b' + re.escape(text) + r'\b', resolved, rewritten, count=1)

    return rewritten, references


# ── Entities and topic ───────────────────────────────────────────────────────


def extract_entities(query: str, state: ConversationState) -> list[Entity]:
    """Spot locations and numbers, tagged with the upcoming turn number."""
    turn = state.conversation_length + 1
    entities: list[Entity] = []
    seen_locations: set[str] = set()

    for pattern in LOCATION_ENTITY_PATTERNS:
        for match in pattern.finditer(query):
            value = match.group(1).strip()
            if value.lower() in seen_locations:
                continue
            seen_locations.add(value.lower())
            entities.append(Entity(
                type=EntityKind.LOCATION, value=value, confidence=0.8, mentioned_at=turn, context=query,
            ))

    consumed: list[tuple[int, int]] = []
    for pattern in NUMBER_ENTITY_PATTERNS:
        for match in pattern.finditer(query):
            consumed.append(match.span())
            entities.append(Entity(
                type=EntityKind.NUMBER, value=f"{match.group(1)} {match.group(2).lower()}",
                confidence=0.7, mentioned_at=turn, context=query,
            ))

    for match in PLAIN_NUMBER_PATTERN.finditer(query):
        start, end = match.span()
        if any(s <= start < e for s, e in consumed):
            continue
        entities.append(Entity(
            type=EntityKind.NUMBER, value=match.group(1), confidence=0.6, mentioned_at=turn, context=query,
        ))

    return entities


def determine_topic(query: str, current_topic: Topic = Topic.INITIAL) -> Topic:
    """Topic for the next turn based on what the user just talked about.

    Keeps ``current_topic`` when the message names no topic (e.g. a bare
    number answering a question).
    """
    lowered = query.lower()
    for topic, keywords in TOPIC_KEYWORDS:
        if any(k in lowered for k in keywords):
            return topic
    if current_topic != Topic.INITIAL:
        return current_topic
    return Topic.GENERAL
