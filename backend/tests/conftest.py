"""Shared test infrastructure for the SpaceMatch test suite.

Provides:
- db_session: async SQLite in-memory session with all tables created
- settings: explicit Settings with fast retry timings
- make_listing: factory for ListingRecord
- sample_listings: a small Bangalore/Mumbai inventory
- stub_extractor: RequirementExtractor whose ``extract`` is an AsyncMock
"""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Import Base first, then models to register all tables
from spacematch.infra.database import Base

import spacematch.domain.models  # noqa: F401

from spacematch.agents.contracts import ExtractionResult
from spacematch.agents.requirement_extractor import RequirementExtractor
from spacematch.app.config import Settings
from spacematch.domain.schemas import ListingRecord


# ---------------------------------------------------------------------------
# Database session fixture
# ---------------------------------------------------------------------------

@pytest.fixture
async def db_session():
    """Async SQLite in-memory session with all tables created.

    Creates a fresh engine + tables for each test, yields a session,
    then rolls back and tears down.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@pytest.fixture
def settings():
    """Settings with no .env influence and near-zero backoff."""
    return Settings(
        _env_file=None,
        gemini_api_key="test-key",
        extraction_timeout_seconds=1.0,
        extraction_max_attempts=2,
        extraction_backoff_seconds=0.0,
        extraction_backoff_jitter=0.0,
        listing_api_url="http://listings.test/api/properties/search",
    )


# ---------------------------------------------------------------------------
# Listing factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_listing():
    """Factory that builds a ListingRecord.

    Usage:
        listing = make_listing(id="p1", size=500, price=150000)
    """
    def _factory(
        id: str = "prop-1",
        title: str = "Retail shop on 80 Feet Road",
        address: str = "80 Feet Road, Koramangala",
        city: str = "Bangalore",
        size: float = 500,
        price: float = 150000,
        property_type: str = "retail",
        parking: bool = True,
        is_featured: bool = False,
        security_deposit: float | None = None,
        amenities: list[str] | None = None,
        **extra,
    ) -> ListingRecord:
        return ListingRecord(
            id=id,
            title=title,
            address=address,
            city=city,
            size=size,
            price=price,
            property_type=property_type,
            parking=parking,
            is_featured=is_featured,
            security_deposit=security_deposit,
            amenities=amenities or [],
            **extra,
        )

    return _factory


@pytest.fixture
def sample_listings(make_listing):
    return [
        make_listing(id="blr-kor-1", title="Koramangala high-street shop", size=520, price=160000, is_featured=True),
        make_listing(
            id="blr-ind-1", title="Indiranagar corner unit", address="100 Feet Road, Indiranagar",
            size=900, price=350000, parking=False,
        ),
        make_listing(
            id="blr-kor-2", title="Koramangala cafe space", address="5th Block, Koramangala",
            size=450, price=120000, property_type="restaurant",
        ),
        make_listing(
            id="mum-ban-1", title="Bandra retail front", address="Linking Road, Bandra",
            city="Mumbai", size=600, price=250000,
        ),
    ]


# ---------------------------------------------------------------------------
# Extractor stub
# ---------------------------------------------------------------------------

@pytest.fixture
def stub_extractor(settings):
    """RequirementExtractor whose LLM call returns an empty success.

    Override per test with ``stub_extractor.extract.return_value = ...``.
    """
    extractor = RequirementExtractor(settings)
    extractor.extract = AsyncMock(return_value=ExtractionResult(ok=True, requirements=None))
    return extractor
