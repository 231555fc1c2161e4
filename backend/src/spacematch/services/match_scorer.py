"""Dual Match Scorer: BFI and PFI.

Pure-function module. NO LLM, NO database access.

Two independent sub-scores, each a weighted sum of factors in [0, 1]:

    BFI (how well a LISTING fits the brand)
        - Area            (20%)
        - Location        (25%)
        - Budget          (15%)
        - Footfall        (20%)
        - Competition     (10%)
        - Infrastructure  (10%)

    PFI (how well the BRAND fits the listing's owner)
        - Category        (25%)
        - Reputation      (20%)
        - Rent afford.    (20%)
        - Footfall fit    (15%)
        - Demographics    (10%)
        - Space util.     (10%)

The final score blends the two by who is searching (brand 70/30, owner
30/70) and is reported as an integer 0-100.
"""

from __future__ import annotations

from spacematch.domain.enums import EntityType, RecommendationTier
from spacematch.domain.requirements import (
    AreaRequirement,
    Budget,
    BrandLocation,
    BrandProfile,
    BrandRequirements,
    CompetitionPreference,
    DesiredTenant,
    FootfallTarget,
    Infrastructure,
    OwnerLocation,
    OwnerRequirements,
    ParkingInfo,
    PropertyAccessibility,
    PropertyDetails,
    PropertyFootfall,
    RentExpectations,
)
from spacematch.domain.schemas import (
    FinancialSummary,
    ListingRecord,
    ScoredMatch,
    SubScore,
    SubScores,
)

# ── Weights ──────────────────────────────────────────────────────────────────

W_AREA = 0.20
W_LOCATION = 0.25
W_BUDGET = 0.15
W_FOOTFALL = 0.20
W_COMPETITION = 0.10
W_INFRASTRUCTURE = 0.10

W_CATEGORY = 0.25
W_REPUTATION = 0.20
W_RENT_AFFORDABILITY = 0.20
W_FOOTFALL_FIT = 0.15
W_DEMOGRAPHICS = 0.10
W_SPACE_UTILIZATION = 0.10

BFI_WEIGHTS = {
    "areaMatch": W_AREA,
    "locationMatch": W_LOCATION,
    "budgetMatch": W_BUDGET,
    "footfallMatch": W_FOOTFALL,
    "competitionMatch": W_COMPETITION,
    "infrastructureMatch": W_INFRASTRUCTURE,
}

PFI_WEIGHTS = {
    "categoryMatch": W_CATEGORY,
    "reputationMatch": W_REPUTATION,
    "rentAffordability": W_RENT_AFFORDABILITY,
    "footfallFit": W_FOOTFALL_FIT,
    "demographicsMatch": W_DEMOGRAPHICS,
    "spaceUtilization": W_SPACE_UTILIZATION,
}

# (BFI weight, PFI weight) by the side that is searching
FINAL_WEIGHTS = {
    EntityType.BRAND: (0.70, 0.30),
    EntityType.OWNER: (0.30, 0.70),
}

# Neutral factor returned when data is insufficient
NEUTRAL = 0.5

# Defaults when the listing carries no data for a factor
FOOTFALL_DEFAULT = 0.8
COMPETITION_DEFAULT = 0.7
REPUTATION_DEFAULT = 0.8
FOOTFALL_FIT_DEFAULT = 0.7
DEMOGRAPHICS_DEFAULT = 0.75
LOCATION_NO_MATCH = 0.3
CATEGORY_MISMATCH = 0.3
PFI_CONFIDENCE = 0.8

STRENGTH_THRESHOLD = 0.8
CONSIDERATION_THRESHOLD = 0.6

# INR per sqft used for the fit-out estimate
FITOUT_COST_PER_SQFT = 500
DEPOSIT_MONTHS_DEFAULT = 2

TOP_MATCHES = 5

STRENGTH_LABELS = {
    "areaMatch": "Size fits your requirement",
    "locationMatch": "In your preferred location",
    "budgetMatch": "Within your budget",
    "footfallMatch": "Strong footfall",
    "competitionMatch": "Favourable competition around",
    "infrastructureMatch": "Good infrastructure",
    "categoryMatch": "Brand category the owner wants",
    "reputationMatch": "Established brand",
    "rentAffordability": "Rent fits the brand's budget",
    "footfallFit": "Footfall suits the brand",
    "demographicsMatch": "Audience matches the area",
    "spaceUtilization": "Brand will use the full space",
}

CONSIDERATION_LABELS = {
    "areaMatch": "Size differs from your requirement",
    "locationMatch": "Outside your preferred area",
    "budgetMatch": "Rent is outside your budget",
    "footfallMatch": "Lower footfall than you need",
    "competitionMatch": "Competition nearby",
    "infrastructureMatch": "Infrastructure may need work",
    "categoryMatch": "Owner prefers other categories",
    "reputationMatch": "Limited brand track record",
    "rentAffordability": "Rent is a stretch for the brand",
    "footfallFit": "Footfall may not suit the brand",
    "demographicsMatch": "Audience differs from the area",
    "spaceUtilization": "Space does not match the brand's size needs",
}


# ── Helpers ──────────────────────────────────────────────────────────────────

def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def weighted_overall(factors: dict[str, float], weights: dict[str, float]) -> float:
    """Weighted sum of factors; a missing factor counts as neutral."""
    return sum(factors.get(name, NEUTRAL) * weight for name, weight in weights.items())


def _range_fit(value: float | None, low: float | None, high: float | None) -> float:
    """1.0 inside ``[low, high]``, decaying with the ratio outside it."""
    if not value or (not low and not high):
        return NEUTRAL
    low = low or 0
    if high and value > high:
        return _clamp(high / value)
    if low and value < low:
        return _clamp(value / low)
    return 1.0


# ── BFI factors ──────────────────────────────────────────────────────────────

def area_match(area: AreaRequirement | None, size: float | None) -> float:
    """Listing size against the requested range (or preferred size)."""
    if area is None or not size:
        return NEUTRAL
    if area.min or area.max:
        return _range_fit(size, area.min, area.max)
    if area.preferred:
        diff = abs(size - area.preferred) / area.preferred
        return _clamp(1 - diff * 2)
    return NEUTRAL


def location_match(location: BrandLocation | None, listing: ListingRecord) -> float:
    """Half for the city, half for one of the requested localities."""
    if location is None:
        return NEUTRAL
    city = listing.city.lower()
    address = listing.address.lower()

    score = 0.0
    if location.city and location.city.lower() in f"{city} {address}":
        score += 0.5
    if location.areas and any(a.lower() in address or a.lower() in city for a in location.areas):
        score += 0.5
    return score or LOCATION_NO_MATCH


def budget_match(budget: Budget | None, price: float | None) -> float:
    if budget is None or budget.monthly_rent is None:
        return NEUTRAL
    return _range_fit(price, budget.monthly_rent.min, budget.monthly_rent.max)


def footfall_match(footfall: FootfallTarget | None, daily_footfall: int | None) -> float:
    if daily_footfall is None:
        return FOOTFALL_DEFAULT
    if footfall is None or not footfall.minimum_daily:
        return FOOTFALL_DEFAULT
    return _clamp(daily_footfall / footfall.minimum_daily)


def competition_match(competition: CompetitionPreference | None, nearby_competitors: int | None) -> float:
    """Brands that like clusters gain from neighbours; others lose."""
    if nearby_competitors is None:
        return COMPETITION_DEFAULT
    if competition is not None and competition.prefer_near_competitors:
        return _clamp(0.6 + 0.1 * nearby_competitors)
    return _clamp(1.0 - 0.15 * nearby_competitors)


def infrastructure_match(infrastructure: Infrastructure | None, listing: ListingRecord) -> float:
    if infrastructure is None:
        return NEUTRAL
    amenities = [a.lower() for a in listing.amenities]

    score = 0.0
    factors = 0
    if infrastructure.water and any("water" in a for a in amenities):
        score += 0.2
        factors += 1
    if infrastructure.exhaust and any("exhaust" in a for a in amenities):
        score += 0.2
        factors += 1
    if listing.parking:
        score += 0.3
        factors += 1
    if any(a == "ac" or "air condition" in a for a in amenities):
        score += 0.3
        factors += 1
    return _clamp(score) if factors else NEUTRAL


def compute_bfi(brand: BrandRequirements, listing: ListingRecord) -> SubScore:
    factors = {
        "areaMatch": area_match(brand.area, listing.size),
        "locationMatch": location_match(brand.location, listing),
        "budgetMatch": budget_match(brand.budget, listing.price),
        "footfallMatch": footfall_match(brand.footfall, listing.daily_footfall),
        "competitionMatch": competition_match(brand.competition, listing.nearby_competitors),
        "infrastructureMatch": infrastructure_match(brand.infrastructure, listing),
    }
    return SubScore(overall=weighted_overall(factors, BFI_WEIGHTS), confidence=bfi_confidence(brand), factors=factors)


def bfi_confidence(brand: BrandRequirements) -> float:
    """0.5 plus 0.1 for each requirement group the brand has described."""
    groups = (brand.area, brand.location, brand.budget, brand.property_type, brand.brand_profile)
    return min(1.0, 0.5 + 0.1 * sum(1 for g in groups if g is not None))


# ── PFI factors ──────────────────────────────────────────────────────────────

def listing_to_owner_profile(listing: ListingRecord) -> OwnerRequirements:
    """The owner side of a listing, as far as the listing record reveals it."""
    return OwnerRequirements(
        property=PropertyDetails(area=listing.size or None, type=listing.property_type or None),
        location=OwnerLocation(city=listing.city or None, address=listing.address or None),
        rent_expectations=RentExpectations(
            monthly_rent=listing.price or None,
            deposit=(listing.security_deposit / listing.price) if listing.security_deposit and listing.price else None,
        ),
        accessibility=PropertyAccessibility(parking=ParkingInfo(available=listing.parking)),
        footfall=PropertyFootfall(average_daily=listing.daily_footfall) if listing.daily_footfall else None,
    )


def category_match(desired_tenant: DesiredTenant | None, brand_profile: BrandProfile | None) -> float:
    if desired_tenant is None or not desired_tenant.categories:
        return NEUTRAL
    if brand_profile is None or not brand_profile.category:
        return NEUTRAL
    wanted = {c.lower() for c in desired_tenant.categories}
    return 1.0 if brand_profile.category.lower() in wanted else CATEGORY_MISMATCH


def reputation_match(brand_profile: BrandProfile | None) -> float:
    """Outlet count as a proxy for track record."""
    if brand_profile is None or brand_profile.existing_outlets is None:
        return REPUTATION_DEFAULT
    return _clamp(0.6 + 0.04 * brand_profile.existing_outlets)


def rent_affordability(rent_expectations: RentExpectations | None, budget: Budget | None) -> float:
    if rent_expectations is None or budget is None or budget.monthly_rent is None:
        return NEUTRAL
    return _range_fit(rent_expectations.monthly_rent, budget.monthly_rent.min, budget.monthly_rent.max)


def footfall_fit(property_footfall: PropertyFootfall | None, footfall: FootfallTarget | None) -> float:
    if property_footfall is None or not property_footfall.average_daily:
        return FOOTFALL_FIT_DEFAULT
    if footfall is None or not footfall.minimum_daily:
        return FOOTFALL_FIT_DEFAULT
    return _clamp(property_footfall.average_daily / footfall.minimum_daily)


def demographics_match(property_footfall: PropertyFootfall | None, footfall: FootfallTarget | None) -> float:
    owner_income = (
        property_footfall.demographics.income_level
        if property_footfall and property_footfall.demographics else None
    )
    brand_income = (
        footfall.target_demographics.income_level
        if footfall and footfall.target_demographics else None
    )
    if not owner_income or not brand_income:
        return DEMOGRAPHICS_DEFAULT
    return 1.0 if owner_income.lower() == brand_income.lower() else 0.4


def space_utilization(property_details: PropertyDetails | None, area: AreaRequirement | None) -> float:
    if property_details is None or not property_details.area:
        return NEUTRAL
    return area_match(area, property_details.area)


def compute_pfi(owner: OwnerRequirements, brand: BrandRequirements) -> SubScore:
    factors = {
        "categoryMatch": category_match(owner.desired_tenant, brand.brand_profile),
        "reputationMatch": reputation_match(brand.brand_profile),
        "rentAffordability": rent_affordability(owner.rent_expectations, brand.budget),
        "footfallFit": footfall_fit(owner.footfall, brand.footfall),
        "demographicsMatch": demographics_match(owner.footfall, brand.footfall),
        "spaceUtilization": space_utilization(owner.property, brand.area),
    }
    return SubScore(overall=weighted_overall(factors, PFI_WEIGHTS), confidence=PFI_CONFIDENCE, factors=factors)


# ── Final score ──────────────────────────────────────────────────────────────

def recommendation_tier(final_score: int) -> RecommendationTier:
    if final_score >= 80:
        return RecommendationTier.EXCELLENT
    if final_score >= 60:
        return RecommendationTier.GOOD
    return RecommendationTier.FAIR


def compute_final_score(
    bfi: SubScore,
    pfi: SubScore,
    entity_type: EntityType | str = EntityType.BRAND,
) -> tuple[int, float, RecommendationTier]:
    """Blend BFI and PFI into ``(score 0-100, confidence, tier)``.

    Confidence is the weaker of the two sub-confidences.
    """
    w_bfi, w_pfi = FINAL_WEIGHTS[EntityType(entity_type)]
    raw = bfi.overall * w_bfi + pfi.overall * w_pfi
    score = max(0, min(100, int(round(raw * 100))))
    return score, min(bfi.confidence, pfi.confidence), recommendation_tier(score)


def financial_summary(listing: ListingRecord) -> FinancialSummary:
    deposit = listing.security_deposit or listing.price * DEPOSIT_MONTHS_DEFAULT
    fitout = listing.size * FITOUT_COST_PER_SQFT
    return FinancialSummary(
        monthly_rent=listing.price,
        deposit=deposit,
        estimated_fitout=fitout,
        total_initial_investment=listing.price + deposit + fitout,
    )


def _explain(factors: dict[str, float], listing: ListingRecord) -> tuple[list[str], list[str]]:
    strengths = [STRENGTH_LABELS[k] for k, v in factors.items() if v > STRENGTH_THRESHOLD]
    considerations = [CONSIDERATION_LABELS[k] for k, v in factors.items() if v < CONSIDERATION_THRESHOLD]
    if listing.parking:
        strengths.append("Parking available")
    else:
        considerations.append("No dedicated parking")
    if listing.is_featured:
        strengths.append("Featured property")
    if not strengths:
        strengths.append("Good overall match")
    return strengths, considerations


def score_listing(
    listing: ListingRecord,
    brand: BrandRequirements,
    entity_type: EntityType | str = EntityType.BRAND,
) -> ScoredMatch:
    """Score a single listing for a brand."""
    entity_type = EntityType(entity_type)
    bfi = compute_bfi(brand, listing)
    pfi = compute_pfi(listing_to_owner_profile(listing), brand)
    score, confidence, tier = compute_final_score(bfi, pfi, entity_type)

    searched = bfi if entity_type == EntityType.BRAND else pfi
    strengths, considerations = _explain(searched.factors, listing)

    return ScoredMatch(
        listing_id=listing.id,
        final_score=score,
        confidence=confidence,
        recommendation=tier.value,
        sub_scores=SubScores(bfi=bfi, pfi=pfi),
        strengths=strengths,
        considerations=considerations,
        financial_summary=financial_summary(listing),
        listing=listing,
    )


def rank_matches(
    listings: list[ListingRecord],
    brand: BrandRequirements | None,
    entity_type: EntityType | str = EntityType.BRAND,
    limit: int = TOP_MATCHES,
) -> list[ScoredMatch]:
    """Score every listing, best first, truncated to ``limit``."""
    brand = brand or BrandRequirements()
    scored = [score_listing(listing, brand, entity_type) for listing in listings]
    scored.sort(key=lambda m: m.final_score, reverse=True)
    return scored[:limit]


def average_score(matches: list[ScoredMatch]) -> int:
    if not matches:
        return 0
    return round(sum(m.final_score for m in matches) / len(matches))
