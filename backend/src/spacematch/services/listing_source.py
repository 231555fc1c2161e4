"""Candidate-listing boundary.

The engine never owns listings. It hands a ``ListingFilters`` record to a
``ListingSource`` and scores whatever comes back. Sources raise
``SearchBoundaryFailure`` on any failure; the orchestrator turns that into
an apologetic reply.
"""

import logging
from typing import Protocol

import httpx
from pydantic import ValidationError

from spacematch.app.config import Settings
from spacematch.domain.errors import SearchBoundaryFailure
from spacematch.domain.schemas import ListingFilters, ListingRecord

logger = logging.getLogger(__name__)

# Upper bound on candidates taken from a single search
MAX_CANDIDATES = 50


class ListingSource(Protocol):
    async def search(self, filters: ListingFilters) -> list[ListingRecord]:
        ...


def _parse_listings(payload) -> list[ListingRecord]:
    """Accept a bare list or ``{"properties"|"results"|"data": [...]}``."""
    if isinstance(payload, dict):
        for key in ("properties", "results", "data"):
            if isinstance(payload.get(key), list):
                payload = payload[key]
                break
    if not isinstance(payload, list):
        raise SearchBoundaryFailure(f"Unexpected listing payload: {type(payload).__name__}")

    listings = []
    for item in payload[:MAX_CANDIDATES]:
        try:
            listings.append(ListingRecord.model_validate(item))
        except ValidationError as exc:
            logger.warning("[listing_source] Skipping malformed listing: %s", exc.errors()[:1])
    return listings


class HttpListingSource:
    """Queries a listing search API over HTTP.

    Filters are sent as camelCase query parameters; empty filters are
    omitted.
    """

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.url = settings.listing_api_url
        self.timeout = settings.listing_api_timeout_seconds
        self.transport = transport

    async def search(self, filters: ListingFilters) -> list[ListingRecord]:
        params = filters.model_dump(by_alias=True, exclude_none=True)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.get(self.url, params=params)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise SearchBoundaryFailure(f"Listing API returned {exc.response.status_code}") from exc
        except httpx.RequestError as exc:
            raise SearchBoundaryFailure(f"Listing API request failed: {exc}") from exc
        except ValueError as exc:
            raise SearchBoundaryFailure("Listing API returned invalid JSON") from exc

        listings = _parse_listings(data)
        logger.info("[listing_source] %d listings for filters %s", len(listings), params)
        return listings


class InMemoryListingSource:
    """Filters a fixed list of listings; used for local runs and tests."""

    def __init__(self, listings: list[ListingRecord] | None = None):
        self.listings = list(listings or [])

    async def search(self, filters: ListingFilters) -> list[ListingRecord]:
        results = []
        for listing in self.listings:
            if filters.city and filters.city.lower() not in listing.city.lower():
                continue
            if filters.property_type and filters.property_type.lower() != listing.property_type.lower():
                continue
            if filters.min_size is not None and listing.size < filters.min_size:
                continue
            if filters.max_size is not None and listing.size > filters.max_size:
                continue
            if filters.min_price is not None and listing.price < filters.min_price:
                continue
            if filters.max_price is not None and listing.price > filters.max_price:
                continue
            results.append(listing)
        return results[:MAX_CANDIDATES]
