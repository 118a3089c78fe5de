"""Resource materialization helpers.

Turns a source descriptor into text or bytes:
- FetchSource: download from a URL (httpx)
- InlineSource: content is already at hand

Functions:
- materialize_text(source) -> str
- materialize_bytes(source) -> bytes
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog

from sqlgame.config.app_config import load_app_config

logger = structlog.get_logger(__name__)


class FetchError(Exception):
    """Raised when a resource could not be fetched."""

    def __init__(self, url: str, reason: str = ""):
        self.url = url
        self.reason = reason
        message = f"Could not fetch '{url}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


@dataclass(frozen=True)
class FetchSource:
    """Resource that must be downloaded."""

    url: str


@dataclass(frozen=True)
class InlineSource:
    """Resource whose content is given directly."""

    content: str | bytes


Source = FetchSource | InlineSource


async def _fetch(url: str, client: httpx.AsyncClient | None) -> httpx.Response:
    timeout = load_app_config().fetch.timeout
    try:
        if client is not None:
            response = await client.get(url, timeout=timeout)
        else:
            async with httpx.AsyncClient(follow_redirects=True) as own_client:
                response = await own_client.get(url, timeout=timeout)
    except httpx.HTTPError as e:
        logger.warning("fetch_failed", url=url, error=str(e))
        raise FetchError(url, str(e)) from e

    if not response.is_success:
        logger.warning("fetch_failed", url=url, status_code=response.status_code)
        raise FetchError(url, f"HTTP {response.status_code}")

    logger.debug("fetch_succeeded", url=url, size=len(response.content))
    return response


async def materialize_text(
    source: Source, client: httpx.AsyncClient | None = None
) -> str:
    """Materialize a source as text.

    Args:
        source: Fetch or inline descriptor
        client: Optional shared httpx client (tests inject a mock transport)

    Returns:
        The decoded text content.

    Raises:
        FetchError: If the URL is unreachable or answers with a non-2xx status
    """
    if isinstance(source, InlineSource):
        if isinstance(source.content, bytes):
            return source.content.decode("utf-8")
        return source.content

    response = await _fetch(source.url, client)
    return response.text


async def materialize_bytes(
    source: Source, client: httpx.AsyncClient | None = None
) -> bytes:
    """Materialize a source as raw bytes.

    Raises:
        FetchError: If the URL is unreachable or answers with a non-2xx status
    """
    if isinstance(source, InlineSource):
        if isinstance(source.content, str):
            return source.content.encode("utf-8")
        return source.content

    response = await _fetch(source.url, client)
    return response.content
