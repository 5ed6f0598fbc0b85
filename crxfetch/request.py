"""
Builds the update-endpoint request that impersonates a Chrome client.
"""

from dataclasses import dataclass
from typing import Dict

from .fetcher import DEFAULT_MAX_REDIRECTS

DEFAULT_CHROME_VERSION = "114.0.5735.133"
DEFAULT_UPDATE_URL = "https://clients2.google.com/service/update2/crx"

CRX_QUERY = "response=redirect&prodversion={version}&acceptformat=crx2,crx3&x=id%3D{id}%26uc"

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/{version} Safari/537.36"
)


@dataclass(frozen=True)
class RetrievalRequest:
    extension_id: str
    chrome_version: str = DEFAULT_CHROME_VERSION
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    update_url: str = DEFAULT_UPDATE_URL

    def __post_init__(self):
        if not self.extension_id:
            raise ValueError("extension_id must not be empty")
        if self.max_redirects < 0:
            raise ValueError(f"max_redirects must be >= 0, got {self.max_redirects}")

    @property
    def url(self) -> str:
        query = CRX_QUERY.format(version=self.chrome_version, id=self.extension_id)
        return f"{self.update_url}?{query}"

    @property
    def headers(self) -> Dict[str, str]:
        return {
            'User-Agent': USER_AGENT.format(version=self.chrome_version),
            'Accept': '*/*',
        }
