"""
Errors raised while fetching and converting extensions.

Every failure the core can produce has its own class so callers can react
to, say, an unsupported CRX version differently from a dropped connection.
"""

from typing import List, Optional, Tuple


class CrxFetchError(Exception):
    """Base class for all crxfetch errors."""


class NetworkError(CrxFetchError):
    """Transport-level failure: DNS, TLS, connection reset, timeout."""

    def __init__(self, url: str, cause: Exception):
        self.url = url
        self.cause = cause
        super().__init__(f"Network error while fetching {url}: {cause}")


class TooManyRedirectsError(CrxFetchError):
    """The redirect chain exhausted the hop budget."""

    def __init__(self, max_redirects: int, hops: List[Tuple[str, int]]):
        self.max_redirects = max_redirects
        self.hops = hops
        chain = " -> ".join(url for url, _ in hops)
        super().__init__(f"Too many redirects (limit {max_redirects}): {chain}")


class DownloadError(CrxFetchError):
    """The final response of the chain was not a 200."""

    def __init__(self, status_code: int, url: str):
        self.status_code = status_code
        self.url = url
        super().__init__(f"Download failed, final status code: {status_code} ({url})")


class FormatError(CrxFetchError):
    """The buffer is not a well-formed CRX container."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Not a valid CRX file: {reason}")


class UnsupportedVersionError(CrxFetchError):
    """The CRX header declares a version other than 2 or 3."""

    def __init__(self, version: int):
        self.version = version
        super().__init__(f"Unsupported CRX version: {version}")


class UnsafeURLError(CrxFetchError):
    """A URL in the chain is not a well-formed https URL."""

    def __init__(self, url: str, reason: str, hops: Optional[List[Tuple[str, int]]] = None):
        self.url = url
        self.reason = reason
        self.hops = hops or []
        super().__init__(f"Refusing to fetch {url}: {reason}")
