"""Tests for the Google Books / Open Library catalog client."""

import httpx
import pytest


def _catalog(settings, handler, api_key=None):
    from tools.book_catalog import BookCatalogClient
    return BookCatalogClient(
        settings, api_key=api_key, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


_VOLUME = {
    "id": "vol1",
    "volumeInfo": {
        "title": "Dune",
        "authors": ["Frank Herbert"],
        "description": "Spice and sand.",
        "pageCount": 412,
        "industryIdentifiers": [
            {"type": "ISBN_10", "identifier": "0441013597"},
            {"type": "ISBN_13", "identifier": "9780441013593"},
        ],
        "imageLinks": {"thumbnail": "http://books.google.com/x?id=1&zoom=1&edge=curl"},
    },
}


class TestNormalizeCoverUrl:
    def test_rewrites(self):
        from tools.book_catalog import normalize_cover_url
        url = normalize_cover_url("http://books.google.com/x?id=1&zoom=1&edge=curl")
        assert url == "https://books.google.com/x?id=1&zoom=2"

    def test_none(self):
        from tools.book_catalog import normalize_cover_url
        assert normalize_cover_url(None) is None


class TestSearch:
    @pytest.mark.asyncio
    async def test_maps_results(self, settings):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"items": [
                _VOLUME,
                {"id": "vol2", "volumeInfo": {"title": "Anonymous"}},
                {"id": "vol3", "volumeInfo": {}},
            ]})

        results = await _catalog(settings, handler, api_key="gb-key").search(" dune ")
        assert [r.id for r in results] == ["vol1", "vol2"]
        assert results[0].author == "Frank Herbert"
        assert results[0].isbn == "9780441013593"
        assert results[0].cover_image_url.startswith("https://")
        assert results[1].author == "Unknown Author"
        assert seen[0].url.params["q"] == "dune"
        assert seen[0].url.params["key"] == "gb-key"

    @pytest.mark.asyncio
    async def test_blank_query(self, settings):
        def handler(request):
            raise AssertionError("no request expected")

        assert await _catalog(settings, handler).search("  ") == []

    @pytest.mark.asyncio
    async def test_no_items(self, settings):
        assert await _catalog(settings, lambda r: httpx.Response(200, json={})).search("zzz") == []

    @pytest.mark.asyncio
    async def test_http_failure(self, settings):
        from config.exceptions import CatalogError
        with pytest.raises(CatalogError):
            await _catalog(settings, lambda r: httpx.Response(500)).search("dune")

    @pytest.mark.asyncio
    async def test_transport_failure(self, settings):
        from config.exceptions import CatalogError

        def handler(request):
            raise httpx.ConnectError("offline", request=request)

        with pytest.raises(CatalogError):
            await _catalog(settings, handler).search("dune")


class TestDetails:
    @pytest.mark.asyncio
    async def test_details_with_table_of_contents(self, settings):
        def handler(request):
            host = request.url.host
            if host == "books.test":
                return httpx.Response(200, json=_VOLUME)
            if request.url.path == "/search.json":
                assert request.url.params["q"] == "isbn:9780441013593"
                return httpx.Response(200, json={"docs": [{"key": "/works/OL1W"}]})
            if request.url.path == "/works/OL1W.json":
                return httpx.Response(200, json={"details": {"table_of_contents": [
                    {"title": "Book One: Dune"},
                    {"level": "Book Two: Muad'Dib"},
                    {"title": "  "},
                    "junk",
                ]}})
            return httpx.Response(404)

        details = await _catalog(settings, handler).get_details("vol1")
        assert details.title == "Dune"
        assert details.number_of_pages == 412
        assert details.description == "Spice and sand."
        assert details.chapters == ["Book One: Dune", "Book Two: Muad'Dib"]

    @pytest.mark.asyncio
    async def test_missing_table_of_contents(self, settings):
        def handler(request):
            if request.url.host == "books.test":
                return httpx.Response(200, json=_VOLUME)
            return httpx.Response(200, json={"docs": []})

        details = await _catalog(settings, handler).get_details("vol1")
        assert details.chapters is None
        assert details.isbn == "9780441013593"

    @pytest.mark.asyncio
    async def test_open_library_outage_tolerated(self, settings):
        def handler(request):
            if request.url.host == "books.test":
                return httpx.Response(200, json=_VOLUME)
            raise httpx.ConnectError("down", request=request)

        details = await _catalog(settings, handler).get_details("vol1")
        assert details is not None
        assert details.chapters is None

    @pytest.mark.asyncio
    async def test_unknown_volume(self, settings):
        assert await _catalog(settings, lambda r: httpx.Response(404)).get_details("nope") is None
