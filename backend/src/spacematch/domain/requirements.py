"""Partial requirement schemas for both sides of the marketplace.

Every field is optional: requirements are accumulated turn by turn, so any
subset (including nothing at all) is a valid value. JSON keys are camelCase
to match the turn contract; Python attributes are snake_case.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model with camelCase aliases that accepts either key style."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ---------------------------------------------------------------------------
# Shared pieces
# ---------------------------------------------------------------------------


class Electricity(CamelModel):
    phase: str | None = None  # single, three
    load_required: float | None = None  # kW


class Infrastructure(CamelModel):
    """Utilities a brand needs or a property has."""

    electricity: Electricity | None = None
    water: bool | None = None
    drainage: bool | None = None
    exhaust: bool | None = None
    gas_connection: bool | None = None
    hvac: bool | None = None


# ---------------------------------------------------------------------------
# Brand (what they NEED)
# ---------------------------------------------------------------------------


class AreaRequirement(CamelModel):
    min: float | None = None  # sqft
    max: float | None = None
    preferred: float | None = None
    flexibility: str | None = None  # strict, moderate, flexible


class BrandLocation(CamelModel):
    city: str | None = None
    areas: list[str] | None = None
    landmarks: list[str] | None = None
    restrictions: list[str] | None = None


class PropertyTypePreference(CamelModel):
    primary: str | None = None  # retail_shop, restaurant_space, qsr, kiosk, office, ...
    acceptable: list[str] | None = None


class RentRange(CamelModel):
    min: float | None = None
    max: float | None = None
    currency: str | None = None


class DepositTerms(CamelModel):
    max_months: float | None = None


class Budget(CamelModel):
    monthly_rent: RentRange | None = None
    deposit: DepositTerms | None = None
    fitout_budget: float | None = None


class TargetDemographics(CamelModel):
    age_groups: list[str] | None = None
    income_level: str | None = None  # budget, mid, premium, luxury
    working_professionals: bool | None = None
    families: bool | None = None
    students: bool | None = None


class FootfallTarget(CamelModel):
    minimum_daily: int | None = None
    target_demographics: TargetDemographics | None = None


class AccessibilityNeeds(CamelModel):
    parking_required: bool | None = None
    road_access: str | None = None  # main_road, side_street, any
    metro_max_distance: float | None = None  # meters


class CompetitionPreference(CamelModel):
    prefer_near_competitors: bool | None = None
    avoid_direct_competitors: list[str] | None = None
    category_density: str | None = None  # low, medium, high


class DurationRange(CamelModel):
    min: float | None = None  # months
    preferred: float | None = None


class BrandLeaseTerms(CamelModel):
    duration: DurationRange | None = None
    lock_in_period: float | None = None
    escalation: float | None = None
    rent_free_period: float | None = None


class BrandProfile(CamelModel):
    name: str | None = None
    category: str | None = None  # F&B, Retail, Service, Entertainment
    subcategory: str | None = None
    existing_outlets: int | None = None
    avg_footfall: int | None = None


class BrandRequirements(CamelModel):
    """Everything a space-seeking brand has told us so far."""

    area: AreaRequirement | None = None
    location: BrandLocation | None = None
    property_type: PropertyTypePreference | None = None
    budget: Budget | None = None
    footfall: FootfallTarget | None = None
    accessibility: AccessibilityNeeds | None = None
    competition: CompetitionPreference | None = None
    infrastructure: Infrastructure | None = None
    lease_terms: BrandLeaseTerms | None = None
    brand_profile: BrandProfile | None = None


# ---------------------------------------------------------------------------
# Owner (what they HAVE and WANT)
# ---------------------------------------------------------------------------


class PropertyConfiguration(CamelModel):
    floors: int | None = None
    ceiling_height: float | None = None  # feet
    frontage: float | None = None


class PropertyDetails(CamelModel):
    area: float | None = None  # sqft
    type: str | None = None
    configuration: PropertyConfiguration | None = None


class OwnerLocation(CamelModel):
    city: str | None = None
    area: str | None = None
    address: str | None = None
    landmark: str | None = None


class RentExpectations(CamelModel):
    monthly_rent: float | None = None
    deposit: float | None = None  # months of rent
    negotiable: bool | None = None
    maintenance_charges: float | None = None


class ParkingInfo(CamelModel):
    available: bool | None = None
    spaces: int | None = None


class PropertyAccessibility(CamelModel):
    metro_distance: float | None = None
    nearest_metro: str | None = None
    main_road: bool | None = None
    parking: ParkingInfo | None = None


class AreaDemographics(CamelModel):
    dominant_age_group: list[str] | None = None
    income_level: str | None = None


class PropertyFootfall(CamelModel):
    average_daily: int | None = None
    peak_hours: list[str] | None = None
    demographics: AreaDemographics | None = None


class NearbyBrand(CamelModel):
    name: str | None = None
    category: str | None = None
    distance: float | None = None  # meters


class SurroundingCompetition(CamelModel):
    nearby_brands: list[NearbyBrand] | None = None


class DesiredTenant(CamelModel):
    categories: list[str] | None = None
    preferred_brands: list[str] | None = None
    avoid_categories: list[str] | None = None


class OwnerLeaseTerms(CamelModel):
    min_duration: float | None = None  # months
    lock_in_period: float | None = None
    escalation: float | None = None
    rent_free_period: float | None = None


class Availability(CamelModel):
    status: str | None = None  # immediate, upcoming, occupied
    available_from: str | None = None


class OwnerRequirements(CamelModel):
    """Everything a listing owner has told us so far."""

    property: PropertyDetails | None = None
    location: OwnerLocation | None = None
    rent_expectations: RentExpectations | None = None
    infrastructure: Infrastructure | None = None
    accessibility: PropertyAccessibility | None = None
    footfall: PropertyFootfall | None = None
    surrounding_competition: SurroundingCompetition | None = None
    desired_tenant: DesiredTenant | None = None
    lease_terms: OwnerLeaseTerms | None = None
    availability: Availability | None = None


Requirements = BrandRequirements | OwnerRequirements


def requirements_model(entity_type: str) -> type[CamelModel]:
    """Return the requirements schema class for an entity type."""
    return OwnerRequirements if entity_type == "owner" else BrandRequirements


def to_payload(requirements: CamelModel | None) -> dict:
    """Dump requirements as a camelCase dict without empty fields."""
    if requirements is None:
        return {}
    return requirements.model_dump(by_alias=True, exclude_none=True)
