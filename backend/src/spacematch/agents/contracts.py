"""Typed dataclasses for agent I/O contracts."""

from dataclasses import dataclass, field

from spacematch.domain.requirements import BrandRequirements, OwnerRequirements


@dataclass
class MessageInterpretation:
    """Output of the deterministic Message Interpreter."""
    city: str | None = None
    localities: list[str] = field(default_factory=list)
    zone: str | None = None
    area_sqft: float | None = None
    min_sqft: float | None = None
    max_sqft: float | None = None
    rent: float | None = None  # single monthly amount
    min_rent: float | None = None
    max_rent: float | None = None
    deposit_months: float | None = None
    property_type: str | None = None
    parking_mentioned: bool = False
    currency_format: str | None = None  # lakhs, thousands, exact
    raw_text: str = ""

    def __post_init__(self):
        # Single sqft value implies a degenerate range
        if self.area_sqft is not None and self.min_sqft is None and self.max_sqft is None:
            self.min_sqft = self.area_sqft
            self.max_sqft = self.area_sqft

    @property
    def has_rent(self) -> bool:
        return self.rent is not None or self.min_rent is not None or self.max_rent is not None

    @property
    def is_empty(self) -> bool:
        return not (
            self.city or self.localities or self.area_sqft is not None
            or self.min_sqft is not None or self.has_rent or self.property_type
            or self.deposit_months is not None
        )


@dataclass
class ExtractionResult:
    """Output of the Requirement Extractor.

    ``ok`` is False when the service failed or its output could not be
    parsed; ``requirements`` is then None and the caller keeps what it
    already knows.
    """
    ok: bool
    requirements: BrandRequirements | OwnerRequirements | None = None
    error: str | None = None
    attempts: int = 0
    tokens_used: int = 0
    latency_ms: int = 0
