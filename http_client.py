import logging
from typing import Optional

import httpx

from config import Settings

logger = logging.getLogger(__name__)


def create_http_client(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """Build the pooled async client shared by outbound cover fetches.

    The app lifespan owns the client and closes it on shutdown.
    """
    # Connection limits for concurrent cover requests
    limits = httpx.Limits(
        max_keepalive_connections=20,
        max_connections=100,
        keepalive_expiry=30.0
    )

    timeout = httpx.Timeout(
        timeout=settings.covers_timeout,
        connect=5.0,
    )

    # Open Library redirects cover requests to its archive host
    return httpx.AsyncClient(
        limits=limits,
        timeout=timeout,
        follow_redirects=True,
        transport=transport,
    )


async def close_http_client(client: Optional[httpx.AsyncClient]) -> None:
    if client is None or client.is_closed:
        return
    await client.aclose()
    logger.debug("HTTP client closed")
