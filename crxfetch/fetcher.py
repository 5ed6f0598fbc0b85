"""
Encapsulates the HTTP fetch logic for the update endpoint.
Follows redirects by hand so the same impersonation headers go out on every hop,
and hands back the final response body as a lazy stream.
"""

import time
from typing import AsyncIterator, Dict, List, Optional, Tuple

import httpx
import structlog

from .errors import NetworkError, TooManyRedirectsError, UnsafeURLError

logger = structlog.get_logger(__name__)

DEFAULT_MAX_REDIRECTS = 5


def _require_https(url: str, hops: List[Tuple[str, int]]):
    try:
        scheme = httpx.URL(url).scheme
    except httpx.InvalidURL as e:
        raise UnsafeURLError(url, str(e), list(hops)) from e
    if scheme != "https":
        logger.warning("insecure_url_rejected", url=url, scheme=scheme, hops=len(hops))
        raise UnsafeURLError(url, f"scheme {scheme!r} is not https", list(hops))


async def _discard(url: str, response: httpx.Response):
    """Drain whatever is left of the body and release the connection."""
    try:
        if not response.is_closed and not response.is_stream_consumed:
            async for _ in response.aiter_raw():
                pass
    except httpx.HTTPError as e:
        raise NetworkError(url, e) from e
    finally:
        await response.aclose()


class FetchResult:
    """Final response of a redirect chain. The caller owns the body stream."""

    def __init__(
        self,
        response: httpx.Response,
        hops: List[Tuple[str, int]],
        fetch_time: float = 0.0,
    ):
        self._response = response
        self.url = str(response.url)
        self.status_code = response.status_code
        self.headers = response.headers
        self.hops = hops
        self.fetch_time = fetch_time

    @property
    def redirect_count(self) -> int:
        return len(self.hops) - 1

    @property
    def closed(self) -> bool:
        return self._response.is_closed

    async def aiter_bytes(self, chunk_size: Optional[int] = None) -> AsyncIterator[bytes]:
        """Yield the decoded body in chunks without buffering it."""
        try:
            async for chunk in self._response.aiter_bytes(chunk_size):
                yield chunk
        except httpx.HTTPError as e:
            raise NetworkError(self.url, e) from e

    async def drain(self):
        """Throw the rest of the body away and close the response."""
        await _discard(self.url, self._response)

    async def aclose(self):
        await self._response.aclose()

    async def __aenter__(self) -> "FetchResult":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()


class HTTPFetcher:
    def __init__(
        self,
        timeout: Optional[float] = 30.0,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the HTTP fetcher.

        Args:
            timeout: Per-request timeout in seconds. None keeps httpx's defaults.
            max_redirects: Hop budget used when fetch() is not given one.
            transport: Optional transport override, mostly for tests.
        """
        if max_redirects < 0:
            raise ValueError(f"max_redirects must be >= 0, got {max_redirects}")

        self.timeout = timeout
        self.max_redirects = max_redirects

        client_kwargs = {
            'follow_redirects': False,
            'limits': httpx.Limits(max_connections=20, max_keepalive_connections=10),
        }
        if timeout is not None:
            client_kwargs['timeout'] = httpx.Timeout(timeout)
        if transport is not None:
            client_kwargs['transport'] = transport
        self._client = httpx.AsyncClient(**client_kwargs)

    async def fetch(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        max_redirects: Optional[int] = None,
    ) -> FetchResult:
        """GET ``url`` and follow redirects until a terminal response.

        The same ``headers`` are sent on every hop. A 3xx without a usable
        Location header is terminal and returned as-is, like any other status.

        Raises:
            TooManyRedirectsError: more than ``max_redirects`` redirects.
            NetworkError: the transport failed on any hop.
            UnsafeURLError: the starting URL or a redirect target is not https.
        """
        if max_redirects is None:
            max_redirects = self.max_redirects
        if max_redirects < 0:
            raise ValueError(f"max_redirects must be >= 0, got {max_redirects}")

        hops: List[Tuple[str, int]] = []
        remaining = max_redirects
        current_url = url
        start_time = time.time()

        while True:
            _require_https(current_url, hops)
            response = await self._send(current_url, headers)
            hops.append((current_url, response.status_code))

            next_url = self._redirect_target(response)
            if next_url is None:
                fetch_time = time.time() - start_time
                logger.info(
                    "fetch_complete",
                    url=current_url,
                    status_code=response.status_code,
                    redirects=len(hops) - 1,
                    fetch_time=round(fetch_time, 3),
                )
                return FetchResult(response, hops, fetch_time)

            await _discard(current_url, response)

            if remaining == 0:
                logger.warning("redirect_limit_reached", url=url, max_redirects=max_redirects)
                raise TooManyRedirectsError(max_redirects, hops)

            logger.debug(
                "redirect_followed",
                source=current_url,
                target=next_url,
                status_code=response.status_code,
                remaining=remaining - 1,
            )
            current_url = next_url
            remaining -= 1

    async def _send(self, url: str, headers: Optional[Dict[str, str]]) -> httpx.Response:
        request = self._client.build_request("GET", url, headers=headers)
        try:
            return await self._client.send(request, stream=True)
        except httpx.TransportError as e:
            logger.warning("network_error", url=url, error=str(e))
            raise NetworkError(url, e) from e

    def _redirect_target(self, response: httpx.Response) -> Optional[str]:
        """Absolute URL to follow, or None if the response is terminal."""
        if not 300 <= response.status_code < 400:
            return None
        location = response.headers.get("location")
        if not location:
            return None
        try:
            return str(response.url.join(location))
        except httpx.InvalidURL:
            logger.warning("unusable_location_header", url=str(response.url), location=location)
            return None

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self) -> "HTTPFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
