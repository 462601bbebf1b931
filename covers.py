import logging
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Optional
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)

NO_COVER_URL = "/static/no-cover.svg"
DEFAULT_COVER_MEDIA_TYPE = "image/jpeg"


class CoverError(Exception):
    """Raised when the cover service cannot provide an image."""


class CoverNotFoundError(CoverError):
    def __init__(self, isbn: str) -> None:
        super().__init__(f"Cover not found for ISBN {isbn}")
        self.isbn = isbn


class CoverFetchError(CoverError):
    pass


def cover_url_for(isbn: Optional[str]) -> str:
    """Map an ISBN to the image reference the pages embed.

    Books without an ISBN get the static placeholder; everything else goes
    through the internal proxy so a missing cover never shows as a broken image.
    """
    if not isbn:
        return NO_COVER_URL
    return f"/api/covers/isbn/{quote(isbn, safe='')}"


@dataclass
class CoverImage:
    media_type: str
    stream: AsyncIterator[bytes]
    close: Callable[[], Awaitable[None]]


class CoverService:
    """Fetches medium sized covers from the Open Library covers API."""

    def __init__(self, client: httpx.AsyncClient, base_url: str = "https://covers.openlibrary.org/b/isbn") -> None:
        self.client = client
        self.base_url = base_url.rstrip("/")

    def upstream_url(self, isbn: str) -> str:
        # default=false makes Open Library answer 404 instead of a blank placeholder
        return f"{self.base_url}/{quote(isbn, safe='')}-M.jpg?default=false"

    async def fetch(self, isbn: str) -> CoverImage:
        """Open a streamed response for the cover of ``isbn``.

        The caller must await ``CoverImage.close`` once the body is consumed.
        Raises CoverNotFoundError for any non-2xx answer and CoverFetchError
        when the service cannot be reached.
        """
        request = self.client.build_request("GET", self.upstream_url(isbn))
        try:
            response = await self.client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.error(f"Cover fetch failed for {isbn}: {e}")
            raise CoverFetchError("Failed to fetch cover") from e

        if not response.is_success:
            await response.aclose()
            logger.info(f"No cover for {isbn} (upstream status {response.status_code})")
            raise CoverNotFoundError(isbn)

        media_type = response.headers.get("content-type") or DEFAULT_COVER_MEDIA_TYPE
        return CoverImage(media_type=media_type, stream=response.aiter_bytes(), close=response.aclose)
