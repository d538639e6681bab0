"""Bibliographic lookup: Google Books for metadata, Open Library for tables of contents."""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from config.exceptions import CatalogError
from config.settings import Settings

logger = logging.getLogger(__name__)

UNKNOWN_AUTHOR = "Unknown Author"


# ---- Google Books response models ----

class _IndustryIdentifier(BaseModel):
    type: str = ""
    identifier: str = ""


class _ImageLinks(BaseModel):
    thumbnail: Optional[str] = None


class _VolumeInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    authors: Optional[list[str]] = None
    description: Optional[str] = None
    page_count: Optional[int] = Field(default=None, alias="pageCount")
    industry_identifiers: Optional[list[_IndustryIdentifier]] = Field(
        default=None, alias="industryIdentifiers",
    )
    image_links: Optional[_ImageLinks] = Field(default=None, alias="imageLinks")


class _Volume(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    volume_info: _VolumeInfo = Field(alias="volumeInfo")


class _SearchResponse(BaseModel):
    items: Optional[list[_Volume]] = None


# ---- Public results ----

@dataclass
class BookSearchResult:
    """One catalog hit."""
    id: str
    title: str
    author: str
    cover_image_url: Optional[str] = None
    isbn: Optional[str] = None


@dataclass
class BookDetails:
    """Detailed metadata for a catalog id."""
    title: str
    author: str
    isbn: Optional[str] = None
    cover_image_url: Optional[str] = None
    description: Optional[str] = None
    number_of_pages: Optional[int] = None
    chapters: Optional[list[str]] = None


def normalize_cover_url(url: Optional[str]) -> Optional[str]:
    """Force https and ask for the larger, uncurled thumbnail."""
    if not url:
        return None
    return (
        url.replace("http://", "https://")
        .replace("&edge=curl", "")
        .replace("zoom=1", "zoom=2")
    )


def _pick_isbn(identifiers: Optional[list[_IndustryIdentifier]]) -> Optional[str]:
    """Prefer ISBN-13, fall back to ISBN-10."""
    if not identifiers:
        return None
    for wanted in ("ISBN_13", "ISBN_10"):
        for ident in identifiers:
            if ident.type == wanted and ident.identifier:
                return ident.identifier
    return None


def _author_line(authors: Optional[list[str]]) -> str:
    return ", ".join(authors) if authors else UNKNOWN_AUTHOR


class BookCatalogClient:
    """Async client for the Google Books and Open Library APIs."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        api_key: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or Settings()
        self.api_key = api_key
        self._http_client = http_client

    async def _get_json(self, url: str, params: dict) -> Optional[dict]:
        """GET ``url`` and return its JSON body, or None on a non-200 response."""
        client = self._http_client or httpx.AsyncClient(timeout=self.settings.catalog_timeout)
        try:
            response = await client.get(url, params=params)
        except httpx.HTTPError as e:
            raise CatalogError(f"Catalog request failed: {e}", {"url": url}) from e
        finally:
            if self._http_client is None:
                await client.aclose()
        if response.status_code != 200:
            logger.warning("Catalog returned HTTP %d for %s", response.status_code, url)
            return None
        try:
            return response.json()
        except ValueError as e:
            raise CatalogError("Failed to decode catalog response", {"url": url}) from e

    def _key_params(self) -> dict:
        return {"key": self.api_key} if self.api_key else {}

    async def search(self, query: str) -> list[BookSearchResult]:
        """Search books by title and/or author."""
        query = query.strip()
        if not query:
            return []

        params = {
            "q": query,
            "maxResults": self.settings.catalog_max_results,
            "printType": "books",
            **self._key_params(),
        }
        data = await self._get_json(f"{self.settings.google_books_base_url}/volumes", params)
        if data is None:
            raise CatalogError("Network error occurred", {"query": query})
        try:
            parsed = _SearchResponse.model_validate(data)
        except ValidationError as e:
            raise CatalogError("Failed to decode search results", {"query": query}) from e

        results = []
        for item in parsed.items or []:
            info = item.volume_info
            if not info.title:
                continue
            results.append(BookSearchResult(
                id=item.id,
                title=info.title,
                author=_author_line(info.authors),
                cover_image_url=normalize_cover_url(info.image_links.thumbnail if info.image_links else None),
                isbn=_pick_isbn(info.industry_identifiers),
            ))
        logger.info("Catalog search '%s' returned %d results", query, len(results))
        return results

    async def get_details(self, volume_id: str) -> Optional[BookDetails]:
        """Fetch metadata for a volume, with a table of contents when Open Library has one."""
        data = await self._get_json(
            f"{self.settings.google_books_base_url}/volumes/{volume_id}", self._key_params(),
        )
        if data is None:
            return None
        try:
            volume = _Volume.model_validate(data)
        except ValidationError as e:
            raise CatalogError("Failed to decode volume details", {"volume_id": volume_id}) from e

        info = volume.volume_info
        isbn = _pick_isbn(info.industry_identifiers)
        chapters = None
        if isbn:
            try:
                chapters = await self.get_table_of_contents(isbn)
            except CatalogError as e:
                logger.info("No table of contents for ISBN %s: %s", isbn, e)

        return BookDetails(
            title=info.title or "",
            author=_author_line(info.authors),
            isbn=isbn,
            cover_image_url=normalize_cover_url(info.image_links.thumbnail if info.image_links else None),
            description=info.description,
            number_of_pages=info.page_count,
            chapters=chapters,
        )

    async def get_table_of_contents(self, isbn: str) -> Optional[list[str]]:
        """Look up chapter titles for an ISBN on Open Library."""
        base = self.settings.open_library_base_url
        search = await self._get_json(f"{base}/search.json", {"q": f"isbn:{isbn}", "limit": 1})
        docs = (search or {}).get("docs") or []
        key = docs[0].get("key") if docs and isinstance(docs[0], dict) else None
        if not key:
            return None

        details = await self._get_json(f"{base}{key}.json", {"jscmd": "details"})
        toc = ((details or {}).get("details") or {}).get("table_of_contents")
        if not isinstance(toc, list):
            return None

        chapters = []
        for entry in toc:
            if not isinstance(entry, dict):
                continue
            title = entry.get("title") or entry.get("level")
            if isinstance(title, str) and title.strip():
                chapters.append(title.strip())
        return chapters or None
