"""HTTP page fetcher."""

import logging
from types import TracebackType
from typing import Optional

import httpx

from focus_monitor.config import FetcherConfig
from focus_monitor.core.entities import FetchResponse
from focus_monitor.core.errors import (
    ConnectionRefusedFetchError,
    FetchError,
    FetchTimeoutError,
    ForbiddenError,
    HostNotFoundError,
    HttpStatusError,
    InvalidUrlError,
    PageNotFoundError,
)
from focus_monitor.core.interfaces import PageFetcher

logger = logging.getLogger(__name__)

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo",
    "name resolution",
    "no address associated",
    "name does not resolve",
)


def _error_chain(exc: BaseException) -> list[BaseException]:
    chain = []
    current: Optional[BaseException] = exc
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or current.__context__
    return chain


def map_connect_error(exc: httpx.ConnectError) -> FetchError:
    """Map a connection failure onto the fetch error taxonomy."""
    for cause in _error_chain(exc):
        if isinstance(cause, ConnectionRefusedError):
            return ConnectionRefusedFetchError()
        text = str(cause).lower()
        if any(marker in text for marker in _DNS_MARKERS):
            return HostNotFoundError()
        if "refused" in text:
            return ConnectionRefusedFetchError()
    return HttpStatusError(None)


def map_status(status_code: int) -> FetchError:
    if status_code == 403:
        return ForbiddenError()
    if status_code == 404:
        return PageNotFoundError()
    return HttpStatusError(status_code)


class HttpFetcher(PageFetcher):
    """Fetch pages with a fixed user agent, bounded redirects and a timeout.

    The fetcher owns its ``httpx.AsyncClient``; close it with ``aclose()``
    or use the fetcher as an async context manager. No retries happen here.
    """

    def __init__(
        self,
        config: Optional[FetcherConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config or FetcherConfig()
        self._client = httpx.AsyncClient(
            headers=self._get_headers(),
            timeout=httpx.Timeout(self.config.timeout),
            follow_redirects=True,
            max_redirects=self.config.max_redirects,
            transport=transport,
        )

    def _get_headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.config.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": self.config.accept_language,
        }

    async def fetch(self, url: str) -> FetchResponse:
        """GET ``url``; any status >= 400 or transport failure raises ``FetchError``."""
        try:
            response = await self._client.get(url)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise InvalidUrlError(f"Invalid URL: {url}") from e
        except httpx.TimeoutException as e:
            raise FetchTimeoutError() from e
        except httpx.ConnectError as e:
            raise map_connect_error(e) from e
        except httpx.TooManyRedirects as e:
            raise HttpStatusError(None) from e
        except httpx.HTTPError as e:
            logger.debug("Transport error fetching %s: %s", url, e)
            raise HttpStatusError(None) from e

        if response.status_code >= 400:
            raise map_status(response.status_code)

        return FetchResponse(
            url=str(response.url),
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response.text,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpFetcher":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        await self.aclose()
