"""Message Interpreter: DETERMINISTIC only, no LLM calls.

Regex-based extraction of sizes, rents, localities and property types from
free-form Indian retail-leasing messages ("500 sqft in Koramangala, budget
1 to 2 lakhs"). Used to back-fill critical fields the LLM missed and to
read the user's preferred currency format.
"""

import difflib
import re

from .contracts import MessageInterpretation

LAKH = 100_000
CRORE = 10_000_000
SQM_TO_SQFT = 10.764

# Known cities → canonical name
KNOWN_CITIES = {
    "bangalore": "Bangalore", "bengaluru": "Bangalore", "blr": "Bangalore",
    "mumbai": "Mumbai", "bombay": "Mumbai",
    "delhi": "Delhi", "new delhi": "Delhi",
    "gurgaon": "Gurgaon", "gurugram": "Gurgaon",
    "noida": "Noida",
    "pune": "Pune",
    "hyderabad": "Hyderabad",
    "chennai": "Chennai",
    "kolkata": "Kolkata",
    "ahmedabad": "Ahmedabad",
}

# Localities: official name → (city, zone, spelling variations)
KNOWN_LOCALITIES = {
    "Koramangala": ("Bangalore", "South Bangalore", ["koramangala", "koramangla", "kormangala", "koramgala", "k mangala"]),
    "Indiranagar": ("Bangalore", "East Bangalore", ["indiranagar", "indira nagar", "indranagar", "i nagar"]),
    "Whitefield": ("Bangalore", "East Bangalore", ["whitefield", "white field", "whitefeild"]),
    "HSR Layout": ("Bangalore", "South East Bangalore", ["hsr layout", "hsr"]),
    "Marathahalli": ("Bangalore", "East Bangalore", ["marathahalli", "marathalli", "marthahalli"]),
    "Bellandur": ("Bangalore", "South East Bangalore", ["bellandur", "bellandoor"]),
    "Sarjapur Road": ("Bangalore", "South East Bangalore", ["sarjapur road", "sarjapur"]),
    "MG Road": ("Bangalore", "Central Bangalore", ["mg road", "m g road", "mahatma gandhi road"]),
    "Brigade Road": ("Bangalore", "Central Bangalore", ["brigade road"]),
    "Jayanagar": ("Bangalore", "South Bangalore", ["jayanagar", "jaya nagar"]),
    "BTM Layout": ("Bangalore", "South Bangalore", ["btm layout", "btm"]),
    "JP Nagar": ("Bangalore", "South Bangalore", ["jp nagar", "j p nagar"]),
    "Electronic City": ("Bangalore", "South Bangalore", ["electronic city", "ecity", "e-city"]),
    "Malleshwaram": ("Bangalore", "North Bangalore", ["malleshwaram", "malleswaram"]),
    "Hebbal": ("Bangalore", "North Bangalore", ["hebbal"]),
    "Church Street": ("Bangalore", "Central Bangalore", ["church street"]),
    "Bandra": ("Mumbai", "Western Suburbs", ["bandra"]),
    "Andheri": ("Mumbai", "Western Suburbs", ["andheri"]),
    "Connaught Place": ("Delhi", "Central Delhi", ["connaught place", "cp"]),
    "Hauz Khas": ("Delhi", "South Delhi", ["hauz khas"]),
    "Koregaon Park": ("Pune", "East Pune", ["koregaon park"]),
    "Banjara Hills": ("Hyderabad", "Central Hyderabad", ["banjara hills"]),
}

# Phrase → canonical property type; first match wins
PROPERTY_TYPE_KEYWORDS = [
    ("food court", "food_court"),
    ("qsr", "qsr"),
    ("kiosk", "kiosk"),
    ("restaurant", "restaurant_space"),
    ("cafe", "restaurant_space"),
    ("café", "restaurant_space"),
    ("warehouse", "warehouse"),
    ("office", "office"),
    ("showroom", "retail_shop"),
    ("retail", "retail_shop"),
    ("shop", "retail_shop"),
    ("store", "retail_shop"),
    ("building", "standalone_building"),
]

# ---------------------------------------------------------------------------
# Size patterns
# ---------------------------------------------------------------------------

_SQFT_UNIT = r'(?:sq\.?\s*(?:ft|feet)|sqft|sft|sf|square\s*f(?:ee|oo)t)'
_SQM_UNIT = r'(?:sq\.?\s*m(?:eters?|etres?)?|sqm|square\s*met(?:er|re)s?)'

# Range: "1000-1500 sqft", "1000 to 1500 sq ft"
SIZE_RANGE_PATTERN = re.compile(
    r'(\d+(?:\.\d+)?)\s*(k)?\s*(?:to|[-–])\s*(\d+(?:\.\d+)?)\s*(k)?\s*' + _SQFT_UNIT + r'\b',
    re.IGNORECASE,
)

# Single value: "500 sqft", "1.2k sq ft"
SQFT_PATTERN = re.compile(r'(\d+(?:\.\d+)?)\s*(k)?\s*' + _SQFT_UNIT + r'\b', re.IGNORECASE)
SQM_PATTERN = re.compile(r'(\d+(?:\.\d+)?)\s*' + _SQM_UNIT + r'\b', re.IGNORECASE)

# ---------------------------------------------------------------------------
# Money patterns (applied to cleaned text: lowercase, no commas)
# ---------------------------------------------------------------------------

_MONEY_UNIT = r'(lakhs?|lacs?|lax|l|k|crores?|cr)'

# Range: "1 to 2 lakhs", "50k-70k", "1.5 - 2 lakh"
MONEY_RANGE_PATTERN = re.compile(
    r'(\d+(?:\.\d+)?)\s*' + _MONEY_UNIT + r'?\s*(?:to|[-–])\s*(\d+(?:\.\d+)?)\s*' + _MONEY_UNIT + r'\b(?!\s*' + _SQFT_UNIT + r')',
)
LAKH_PATTERN = re.compile(r'(\d+(?:\.\d+)?)\s*(?:lakhs?|lacs?|lax|l)\b')
CRORE_PATTERN = re.compile(r'(\d+(?:\.\d+)?)\s*(?:crores?|cr)\b')
THOUSAND_PATTERN = re.compile(r'(\d+(?:\.\d+)?)\s*k\b(?!\s*' + _SQFT_UNIT + r')')
CURRENCY_SYMBOL_PATTERN = re.compile(r'(?:₹|rs\.?|inr)\s*(\d+(?:\.\d+)?)')
PLAIN_NUMBER_PATTERN = re.compile(r'(?<![\w.])(\d{4,})(?![\w.])')

RENT_KEYWORDS = re.compile(r'\b(?:rent|budget|price|rental|per\s*month|monthly|/\s*month|pm|lease\s*amount)\b')
DEPOSIT_PATTERN = re.compile(
    r'(?:(\d+(?:\.\d+)?)\s*months?\s*(?:of\s*)?(?:deposit|advance))|(?:(?:deposit|advance)\s*(?:of\s*)?(\d+(?:\.\d+)?)\s*months?)'
)

PARKING_PATTERN = re.compile(r'\bparking\b', re.IGNORECASE)

# Absolute amounts at or above this are read as exact rupees
ABSOLUTE_RENT_FLOOR = 50_000


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _unit_multiplier(unit: str | None) -> int:
    if not unit:
        return 1
    unit = unit.lower()
    if unit.startswith(("lakh", "lac", "lax")) or unit == "l":
        return LAKH
    if unit.startswith("cr"):
        return CRORE
    if unit == "k":
        return 1000
    return 1


def _currency_format(unit: str | None) -> str:
    multiplier = _unit_multiplier(unit)
    if multiplier in (LAKH, CRORE):
        return "lakhs"
    if multiplier == 1000:
        return "thousands"
    return "exact"


def _clean_money_text(text: str) -> str:
    cleaned = text.lower().replace(",", "").replace("/-", "")
    # Ordinals ("12th main") are addresses, never amounts
    return re.sub(r'\b\d+(?:st|nd|rd|th)\b', ' ', cleaned)


def _strip_sizes(text: str) -> str:
    text = SIZE_RANGE_PATTERN.sub(' ', text)
    text = SQFT_PATTERN.sub(' ', text)
    return SQM_PATTERN.sub(' ', text)


def find_locality(text: str) -> tuple[str, str, str] | None:
    """Return ``(official, city, zone)`` for the first locality mentioned.

    Exact spelling variations are tried first, then a fuzzy match on single
    words (to tolerate typos like "koramngala").
    """
    lowered = f" {text.lower()} "
    for official, (city, zone, variations) in KNOWN_LOCALITIES.items():
        for variation in variations:
            if re.search(r'(?<![a-z])' + re.escape(variation) + r'(?![a-z])', lowered):
                return official, city, zone

    candidates = {v: official for official, (_, _, vs) in KNOWN_LOCALITIES.items() for v in vs if len(v) >= 6}
    for word in re.findall(r'[a-z]{6,}', lowered):
        close = difflib.get_close_matches(word, candidates.keys(), n=1, cutoff=0.85)
        if close:
            official = candidates[close[0]]
            city, zone, _ = KNOWN_LOCALITIES[official]
            return official, city, zone
    return None


def find_city(text: str) -> str | None:
    lowered = text.lower()
    for alias, canonical in KNOWN_CITIES.items():
        if re.search(r'\b' + re.escape(alias) + r'\b', lowered):
            return canonical
    return None


def find_property_type(text: str) -> str | None:
    lowered = text.lower()
    for keyword, property_type in PROPERTY_TYPE_KEYWORDS:
        if re.search(r'\b' + re.escape(keyword) + r's?\b', lowered):
            return property_type
    return None


def _parse_size(text: str, result: MessageInterpretation) -> None:
    range_match = SIZE_RANGE_PATTERN.search(text)
    if range_match:
        low = float(range_match.group(1)) * (1000 if range_match.group(2) else 1)
        high = float(range_match.group(3)) * (1000 if range_match.group(4) else 1)
        result.min_sqft, result.max_sqft = min(low, high), max(low, high)
        return

    sqft_match = SQFT_PATTERN.search(text)
    if sqft_match:
        value = float(sqft_match.group(1)) * (1000 if sqft_match.group(2) else 1)
        result.area_sqft = result.min_sqft = result.max_sqft = value
        return

    sqm_match = SQM_PATTERN.search(text)
    if sqm_match:
        value = round(float(sqm_match.group(1)) * SQM_TO_SQFT)
        result.area_sqft = result.min_sqft = result.max_sqft = value


def _parse_rent(text: str, result: MessageInterpretation, topic: str | None) -> None:
    cleaned = _strip_sizes(_clean_money_text(text))
    has_rent_keyword = bool(RENT_KEYWORDS.search(cleaned)) or (topic or "").endswith("budget")

    range_match = MONEY_RANGE_PATTERN.search(cleaned)
    if range_match:
        low_unit = range_match.group(2) or range_match.group(4)
        high_unit = range_match.group(4)
        low = float(range_match.group(1)) * _unit_multiplier(low_unit)
        high = float(range_match.group(3)) * _unit_multiplier(high_unit)
        result.min_rent, result.max_rent = min(low, high), max(low, high)
        result.currency_format = _currency_format(high_unit)
        return

    for pattern, unit in ((LAKH_PATTERN, "lakh"), (CRORE_PATTERN, "crore"), (THOUSAND_PATTERN, "k")):
        match = pattern.search(cleaned)
        if match:
            result.rent = float(match.group(1)) * _unit_multiplier(unit)
            result.currency_format = _currency_format(unit)
            return

    symbol_match = CURRENCY_SYMBOL_PATTERN.search(cleaned)
    if symbol_match:
        result.rent = float(symbol_match.group(1))
        result.currency_format = "exact"
        return

    if has_rent_keyword:
        for match in PLAIN_NUMBER_PATTERN.finditer(cleaned):
            value = float(match.group(1))
            if value >= ABSOLUTE_RENT_FLOOR:
                result.rent = value
                result.currency_format = "exact"
                return


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def interpret_message(text: str, topic: str | None = None) -> MessageInterpretation:
    """Extract structured leasing data from a message using deterministic regex.

    ``topic`` is the current conversation topic; while discussing budget a
    large bare number is read as rupees even without a rent keyword.
    """
    result = MessageInterpretation(raw_text=text)
    if not text or not text.strip():
        return result

    locality = find_locality(text)
    if locality:
        official, city, zone = locality
        result.localities.append(official)
        result.city = city
        result.zone = zone
    result.city = find_city(text) or result.city

    _parse_size(text, result)
    _parse_rent(text, result, topic)

    deposit_match = DEPOSIT_PATTERN.search(_clean_money_text(text))
    if deposit_match:
        result.deposit_months = float(deposit_match.group(1) or deposit_match.group(2))

    result.property_type = find_property_type(text)
    result.parking_mentioned = bool(PARKING_PATTERN.search(text))
    return result


# ---------------------------------------------------------------------------
# Requirement payloads
# ---------------------------------------------------------------------------

def brand_payload(interpretation: MessageInterpretation) -> dict:
    """camelCase ``BrandRequirements`` payload from an interpretation.

    A single size becomes a ±20% search range around it; a single rent a
    ±10% range.
    """
    payload: dict = {}
    if interpretation.area_sqft is not None:
        value = interpretation.area_sqft
        payload["area"] = {"min": round(value * 0.8), "max": round(value * 1.2), "preferred": value}
    elif interpretation.min_sqft is not None:
        payload["area"] = {"min": interpretation.min_sqft, "max": interpretation.max_sqft}

    if interpretation.city or interpretation.localities:
        location: dict = {}
        if interpretation.city:
            location["city"] = interpretation.city
        if interpretation.localities:
            location["areas"] = list(interpretation.localities)
        payload["location"] = location

    if interpretation.property_type:
        payload["propertyType"] = {"primary": interpretation.property_type}

    if interpretation.min_rent is not None:
        payload["budget"] = {"monthlyRent": {
            "min": interpretation.min_rent, "max": interpretation.max_rent, "currency": "INR",
        }}
    elif interpretation.rent is not None:
        payload["budget"] = {"monthlyRent": {
            "min": round(interpretation.rent * 0.9), "max": round(interpretation.rent * 1.1), "currency": "INR",
        }}

    if interpretation.deposit_months is not None:
        payload.setdefault("budget", {})["deposit"] = {"maxMonths": interpretation.deposit_months}

    if interpretation.parking_mentioned:
        payload["accessibility"] = {"parkingRequired": True}
    return payload


def owner_payload(interpretation: MessageInterpretation) -> dict:
    """camelCase ``OwnerRequirements`` payload from an interpretation."""
    payload: dict = {}
    prop: dict = {}
    if interpretation.area_sqft is not None:
        prop["area"] = interpretation.area_sqft
    elif interpretation.min_sqft is not None:
        prop["area"] = interpretation.min_sqft
    if interpretation.property_type:
        prop["type"] = interpretation.property_type
    if prop:
        payload["property"] = prop

    if interpretation.city or interpretation.localities:
        location: dict = {}
        if interpretation.city:
            location["city"] = interpretation.city
        if interpretation.localities:
            location["area"] = interpretation.localities[0]
        payload["location"] = location

    rent = interpretation.rent
    if rent is None and interpretation.min_rent is not None:
        rent = interpretation.min_rent
    if rent is not None:
        payload["rentExpectations"] = {"monthlyRent": rent}
    if interpretation.deposit_months is not None:
        payload.setdefault("rentExpectations", {})["deposit"] = interpretation.deposit_months

    if interpretation.parking_mentioned:
        payload["accessibility"] = {"parking": {"available": True}}
    return payload


def requirements_payload(interpretation: MessageInterpretation, entity_type: str) -> dict:
    if entity_type == "owner":
        return owner_payload(interpretation)
    return brand_payload(interpretation)
