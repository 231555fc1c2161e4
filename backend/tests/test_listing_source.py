"""Tests for the candidate-listing sources."""

import httpx
import pytest

from spacematch.domain.errors import SearchBoundaryFailure
from spacematch.domain.schemas import ListingFilters
from spacematch.services.listing_source import (
    MAX_CANDIDATES,
    HttpListingSource,
    InMemoryListingSource,
)


def _listing_json(id="p1", **overrides):
    data = {
        "id": id,
        "title": "Shop",
        "address": "80 Feet Road, Koramangala",
        "city": "Bangalore",
        "size": 500,
        "price": 150000,
        "propertyType": "retail",
        "parking": True,
    }
    data.update(overrides)
    return data


def _source(settings, handler):
    return HttpListingSource(settings, transport=httpx.MockTransport(handler))


# ═══════════════════════════════════════════════════════════════════════
# HttpListingSource
# ═══════════════════════════════════════════════════════════════════════


class TestHttpListingSource:

    @pytest.mark.asyncio
    async def test_sends_camel_case_filters(self, settings):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            seen["path"] = request.url.path
            return httpx.Response(200, json={"properties": [_listing_json()]})

        filters = ListingFilters(city="Bangalore", property_type="retail", min_price=100000, max_size=600)
        listings = await _source(settings, handler).search(filters)

        assert [l.id for l in listings] == ["p1"]
        assert listings[0].property_type == "retail"
        assert seen["path"] == "/api/properties/search"
        assert seen["params"] == {
            "city": "Bangalore", "propertyType": "retail", "minPrice": "100000.0", "maxSize": "600.0",
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        [_listing_json()],
        {"results": [_listing_json()]},
        {"data": [_listing_json()]},
    ])
    async def test_accepts_list_shapes(self, settings, payload):
        listings = await _source(settings, lambda request: httpx.Response(200, json=payload)).search(ListingFilters())
        assert len(listings) == 1

    @pytest.mark.asyncio
    async def test_skips_malformed_items(self, settings):
        payload = [_listing_json("ok"), {"title": "no id"}, _listing_json("ok-2", size="huge")]
        listings = await _source(settings, lambda request: httpx.Response(200, json=payload)).search(ListingFilters())
        assert [l.id for l in listings] == ["ok"]

    @pytest.mark.asyncio
    async def test_caps_candidates(self, settings):
        payload = [_listing_json(f"p{i}") for i in range(MAX_CANDIDATES + 10)]
        listings = await _source(settings, lambda request: httpx.Response(200, json=payload)).search(ListingFilters())
        assert len(listings) == MAX_CANDIDATES

    @pytest.mark.asyncio
    async def test_http_error_status(self, settings):
        source = _source(settings, lambda request: httpx.Response(503, text="down"))
        with pytest.raises(SearchBoundaryFailure, match="503"):
            await source.search(ListingFilters())

    @pytest.mark.asyncio
    async def test_connection_error(self, settings):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(SearchBoundaryFailure, match="request failed"):
            await _source(settings, handler).search(ListingFilters())

    @pytest.mark.asyncio
    async def test_invalid_json(self, settings):
        source = _source(settings, lambda request: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(SearchBoundaryFailure, match="invalid JSON"):
            await source.search(ListingFilters())

    @pytest.mark.asyncio
    async def test_unexpected_shape(self, settings):
        source = _source(settings, lambda request: httpx.Response(200, json={"count": 3}))
        with pytest.raises(SearchBoundaryFailure, match="Unexpected listing payload"):
            await source.search(ListingFilters())


# ═══════════════════════════════════════════════════════════════════════
# InMemoryListingSource
# ═══════════════════════════════════════════════════════════════════════


class TestInMemoryListingSource:

    @pytest.mark.asyncio
    async def test_no_filters_returns_everything(self, sample_listings):
        assert len(await InMemoryListingSource(sample_listings).search(ListingFilters())) == 4

    @pytest.mark.asyncio
    async def test_city_and_type(self, sample_listings):
        source = InMemoryListingSource(sample_listings)
        ids = [l.id for l in await source.search(ListingFilters(city="bangalore", property_type="retail"))]
        assert ids == ["blr-kor-1", "blr-ind-1"]

    @pytest.mark.asyncio
    async def test_size_and_price_bounds(self, sample_listings):
        source = InMemoryListingSource(sample_listings)
        filters = ListingFilters(min_size=400, max_size=600, min_price=100000, max_price=200000)
        ids = [l.id for l in await source.search(filters)]
        assert ids == ["blr-kor-1", "blr-kor-2"]
