"""Reply templates for every deterministic assistant message.

Tone: friendly commercial-property advisor in India. Amounts are shown
with Indian digit grouping.
"""

from spacematch.domain.requirements import OwnerRequirements
from spacematch.domain.schemas import ScoredMatch
from spacematch.services.disambiguation import format_inr

TEMPLATES = {
    "extraction_retry": (
        "Sorry, I didn't quite catch that. {question}"
    ),
    "no_matches": (
        "I couldn't find exact matches for your requirements. Would you like to adjust "
        "your search criteria or explore alternative locations?"
    ),
    "matches_header": "Found {count} {noun} for you!",
    "more_matches": "I found {count} more {noun} that might interest you. Would you like to see them?",
    "search_error": (
        "Sorry, I couldn't reach our property listings just now. I've kept everything "
        "you told me, so just say \"search again\" in a moment and I'll pick up from here."
    ),
    "owner_ready": (
        "Perfect! I have all the key details about your property:\n\n"
        "Location: {area}, {city}\n"
        "Size: {size} sqft\n"
        "Rent: ₹{rent}/month\n\n"
        "I'm ready to help you create your listing! Let me take you to the listing form "
        "where all these details will be pre-filled."
    ),
    "unknown": (
        "Could you share a few details: the city and area, the size in sqft, and the "
        "monthly rent?"
    ),
}


def get_template(intent: str, **kwargs) -> str:
    """Get a template for the given intent, with optional formatting."""
    template = TEMPLATES.get(intent, TEMPLATES["unknown"])
    try:
        return template.format(**kwargs)
    except (KeyError, IndexError):
        return template


def render_matches(matches: list[ScoredMatch]) -> str:
    """Summary message for a ranked shortlist, led by the top match."""
    if not matches:
        return get_template("no_matches")

    top = matches[0]
    count = len(matches)
    lines = [
        get_template("matches_header", count=count, noun="match" if count == 1 else "matches"),
        "",
        f"Top Match: {top.listing.title or top.listing_id}",
        f"Match Score: {top.final_score}%",
        "",
        "Why this is a great fit:",
        *[f"- {s}" for s in top.strengths],
    ]
    if top.considerations:
        lines += ["", f"Consider: {', '.join(top.considerations)}"]

    finance = top.financial_summary
    lines += [
        "",
        f"Financial: ₹{format_inr(finance.monthly_rent)}/month + ₹{format_inr(finance.deposit)} deposit",
    ]
    if count > 1:
        more = count - 1
        lines += ["", get_template("more_matches", count=more, noun="match" if more == 1 else "matches")]
    return "\n".join(lines)


def render_owner_summary(owner: OwnerRequirements) -> str:
    location = owner.location
    rent = owner.rent_expectations.monthly_rent if owner.rent_expectations else None
    size = owner.property.area if owner.property else None
    return get_template(
        "owner_ready",
        area=(location.area if location and location.area else "N/A"),
        city=(location.city if location and location.city else "N/A"),
        size=f"{size:g}" if size else "N/A",
        rent=format_inr(rent) if rent else "N/A",
    )
