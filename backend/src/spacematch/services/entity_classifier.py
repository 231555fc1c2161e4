"""Entity Classifier: is the speaker a brand (seeker) or an owner (lister)?

DETERMINISTIC only, no LLM calls. Precedence, first match wins:
    1. an already confirmed identity
    2. strong self-identification anywhere in the user's history
    3. a short answer to the brand-or-owner clarification prompt
    4. lexical signal scores with a 0.3 margin
A wrong flip mid-conversation costs more than one extra question, so
anything below the margin is returned as ``needs_clarification``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from spacematch.domain.enums import ClassificationResult, EntityType

logger = logging.getLogger(__name__)

CLARIFICATION_PROMPT = (
    "I'd love to help you find the perfect match! Just to clarify - are you:\n\n"
    "1. A brand/business looking for space to lease?\n"
    "2. A property owner looking for tenants?\n\n"
    "This helps me understand your requirements better."
)

# Minimum lead of one side's signal fraction over the other's
CLASSIFICATION_MARGIN = 0.3

HISTORY_CONFIDENCE = 0.9
MENU_ANSWER_CONFIDENCE = 1.0

BRAND_SIGNALS = [
    "looking for space", "need retail shop", "opening restaurant",
    "want to lease", "searching for location", "expanding our brand",
    "setting up outlet", "require sqft for", "we are", "our restaurant needs",
    "planning to open", "scouting locations", "looking for", "need", "want",
    "looking to rent", "looking to lease", "show me", "i need",
]

OWNER_SIGNALS = [
    "have property", "space available", "retail space for lease",
    "looking for tenants", "property for rent", "we own", "our building has",
    "vacant space", "seeking brands", "property available in", "landlord",
    "lessor", "i have", "available", "for rent", "rent out", "listing",
]

# ---------------------------------------------------------------------------
# Strong self-identification markers (history scan)
# ---------------------------------------------------------------------------

OWNER_MARKERS = [
    re.compile(p, re.IGNORECASE) for p in (
        r"\bproperty\s+owner\b",
        r"\blandlord\b",
        r"\blessor\b",
        r"\bi\s+own\b",
        r"\bwe\s+own\b",
        r"\blooking\s+for\s+(?:a\s+)?tenants?\b",
        r"\bneed\s+(?:a\s+)?tenants?\b",
        r"\bseeking\s+brands\b",
        r"\bspace\s+available\b",
        r"\brent\s+out\b",
        r"\blist(?:ing)?\s+(?:my|our)\b",
        r"\b(?:my|our)\s+(?:\w+\s+){0,3}(?:property|space|shop|building)\s+(?:is\s+)?(?:available|for\s+rent|for\s+lease)\b",
    )
]

# "we have a shop" is also how an expanding brand talks; only counts for
# owners when the same line asks for no space
OWNER_HAVE_MARKER = re.compile(
    r"\b(?:i|we)\s+have\s+(?:a\s+|an\s+)?(?:(?!for\b|budget\b|requirement\b|need\b)\w+\s+){0,3}"
    r"(?:property|space|shop|building|unit|premises)\b",
    re.IGNORECASE,
)

BRAND_MARKERS = [
    re.compile(p, re.IGNORECASE) for p in (
        r"\bbusiness\s+looking\s+for\s+space\b",
        r"\blooking\s+for\s+(?:a\s+)?(?:\w+\s+){0,2}space\b",
        r"\bwant\s+to\s+(?:lease|rent)\b",
        r"\bneed\s+(?:a\s+)?(?:\w+\s+){0,2}space\b",
        r"\btenant\b",
        r"\boccupier\b",
        r"\bour\s+brand\b",
        r"\bopening\s+(?:a\s+)?(?:restaurant|store|outlet|cafe)\b",
    )
]

MENU_BRAND_ANSWER = re.compile(r"^(?:1|option\s*1|brand|a\s+brand|business|business\s+looking.*|looking\s+for\s+space.*)[.!]?$")
MENU_OWNER_ANSWER = re.compile(r"^(?:2|option\s*2|owner|property\s*owner|landlord|proeprty\s*owner)[.!]?$")

CONFIRMATION_REPLY = re.compile(r"^(?:1|2|option\s*[12]|property\s*owner|brand|owner)[.!]?$")


@dataclass
class Classification:
    result: ClassificationResult
    confidence: float = 0.0
    evidence: str = ""
    user_confirmed: bool = False


def is_confirmation_reply(query: str) -> bool:
    """Single-token replies ("1", "owner", ...) that carry no requirements."""
    return bool(CONFIRMATION_REPLY.match((query or "").strip().lower()))


def is_clarification_prompt(text: str) -> bool:
    lowered = (text or "").lower()
    return "just to clarify" in lowered and "property owner" in lowered


def parse_transcript(conversation_history: str | None) -> list[tuple[str, str]]:
    """Split ``User: ...`` / ``Assistant: ...`` text into (speaker, text) turns.

    Lines without a speaker prefix continue the previous turn.
    """
    turns: list[tuple[str, str]] = []
    for line in (conversation_history or "").splitlines():
        match = re.match(r"^\s*(user|assistant)\s*:\s*(.*)$", line, re.IGNORECASE)
        if match:
            turns.append((match.group(1).lower(), match.group(2)))
        elif turns:
            speaker, text = turns[-1]
            turns[-1] = (speaker, f"{text}\n{line}")
    return turns


def _menu_answer(reply: str) -> ClassificationResult | None:
    reply = reply.strip().lower()
    if MENU_OWNER_ANSWER.match(reply):
        return ClassificationResult.OWNER
    if MENU_BRAND_ANSWER.match(reply):
        return ClassificationResult.BRAND
    return None


def _scan_history(turns: list[tuple[str, str]]) -> Classification | None:
    """First decisive user line wins; a conflicting line only counts if none is."""
    previous_assistant = ""
    conflict = None
    for speaker, text in turns:
        if speaker == "assistant":
            previous_assistant = text
            continue

        if is_clarification_prompt(previous_assistant):
            answer = _menu_answer(text)
            if answer is not None:
                return Classification(answer, MENU_ANSWER_CONFIDENCE, f"menu answer: {text.strip()}", True)

        evidence = f"history: {text.strip()[:80]}"
        # Owner markers first: "looking for tenants" must not read as brand
        if any(pattern.search(text) for pattern in OWNER_MARKERS):
            return Classification(ClassificationResult.OWNER, HISTORY_CONFIDENCE, evidence)

        has_space = bool(OWNER_HAVE_MARKER.search(text))
        wants_space = any(pattern.search(text) for pattern in BRAND_MARKERS)
        if has_space and wants_space:
            conflict = conflict or Classification(
                ClassificationResult.NEEDS_CLARIFICATION, 0.5, f"conflicting markers: {text.strip()[:80]}",
            )
        elif has_space:
            return Classification(ClassificationResult.OWNER, HISTORY_CONFIDENCE, evidence)
        elif wants_space:
            return Classification(ClassificationResult.BRAND, HISTORY_CONFIDENCE, evidence)
    return conflict


def lexical_scores(query: str) -> tuple[float, float]:
    """Fraction of brand signals and owner signals present in ``query``."""
    lowered = query.lower()
    brand = sum(1 for s in BRAND_SIGNALS if s in lowered) / len(BRAND_SIGNALS)
    owner = sum(1 for s in OWNER_SIGNALS if s in lowered) / len(OWNER_SIGNALS)
    return brand, owner


def classify_with_evidence(
    query: str,
    confirmed_entity_type: EntityType | str | None = None,
    conversation_history: str | None = None,
) -> Classification:
    """Classify the speaker and report why."""
    if confirmed_entity_type:
        return Classification(
            ClassificationResult(EntityType(confirmed_entity_type).value), 1.0, "confirmed identity",
        )

    turns = parse_transcript(conversation_history)
    scanned = turns
    if query.strip() and (not turns or turns[-1] != ("user", query.strip())):
        scanned = [*turns, ("user", query.strip())]
    found = _scan_history(scanned)
    if found:
        logger.info("[classifier] %s from %s", found.result.value, found.evidence)
        return found

    last_assistant = next((text for speaker, text in reversed(turns) if speaker == "assistant"), "")
    if is_clarification_prompt(last_assistant):
        answer = _menu_answer(query)
        if answer is not None:
            return Classification(answer, MENU_ANSWER_CONFIDENCE, f"menu answer: {query.strip()}", True)

    brand, owner = lexical_scores(query)
    logger.debug("[classifier] lexical scores brand=%.3f owner=%.3f", brand, owner)
    if brand >= owner + CLASSIFICATION_MARGIN:
        return Classification(ClassificationResult.BRAND, min(0.95, 0.7 + brand - owner), "lexical signals")
    if owner >= brand + CLASSIFICATION_MARGIN:
        return Classification(ClassificationResult.OWNER, min(0.95, 0.7 + owner - brand), "lexical signals")
    return Classification(ClassificationResult.NEEDS_CLARIFICATION, max(brand, owner), "ambiguous")


def classify_entity_type(
    query: str,
    confirmed_entity_type: EntityType | str | None = None,
    conversation_history: str | None = None,
) -> ClassificationResult:
    """Return ``brand``, ``owner`` or ``needs_clarification``."""
    return classify_with_evidence(query, confirmed_entity_type, conversation_history).result
