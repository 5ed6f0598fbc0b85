"""
Implements the pipeline for a single extension:
- build request → fetch (following redirects) → stream .crx to disk → strip header → write .zip

retrieve_many() runs several of those pipelines concurrently; they share the
fetcher's connection pool and nothing else.
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

import structlog

from .crx import CrxVersion, parse_header
from .errors import DownloadError
from .fetcher import HTTPFetcher
from .request import DEFAULT_CHROME_VERSION, DEFAULT_UPDATE_URL, RetrievalRequest
from .storage import ExtensionStorage

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ConversionResult:
    extension_id: str
    crx_path: Path
    zip_path: Path
    crx_size: int
    zip_size: int
    version: CrxVersion


class Retriever:
    """Downloads extensions and converts them from CRX to ZIP"""

    def __init__(
        self,
        fetcher: HTTPFetcher,
        storage: ExtensionStorage,
        update_url: str = DEFAULT_UPDATE_URL,
        concurrency: int = 4,
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.fetcher = fetcher
        self.storage = storage
        self.update_url = update_url
        self.concurrency = concurrency

    def build_request(self, extension_id: str, chrome_version: str = DEFAULT_CHROME_VERSION) -> RetrievalRequest:
        return RetrievalRequest(
            extension_id=extension_id,
            chrome_version=chrome_version,
            max_redirects=self.fetcher.max_redirects,
            update_url=self.update_url,
        )

    async def download_crx(self, request: RetrievalRequest, crx_path: Union[str, Path]) -> int:
        """Fetch the container for ``request`` and stream it into ``crx_path``.

        Raises:
            DownloadError: the redirect chain ended on anything but a 200.
        """
        logger.info("download_started", extension_id=request.extension_id, url=request.url)

        result = await self.fetcher.fetch(request.url, request.headers, request.max_redirects)
        if result.status_code != 200:
            await result.drain()
            logger.error("download_failed", extension_id=request.extension_id, status_code=result.status_code)
            raise DownloadError(result.status_code, result.url)

        return await self.storage.stream_to_file(result, crx_path)

    def convert_crx_to_zip(self, crx_path: Union[str, Path], zip_path: Union[str, Path]) -> Tuple[CrxVersion, int]:
        """Strip the CRX header from ``crx_path`` and write the ZIP data to ``zip_path``.

        If the header is invalid nothing is written and the .crx stays in place.
        """
        buffer = self.storage.read(crx_path)
        header = parse_header(buffer)
        size = self.storage.write_archive(zip_path, buffer[header.archive_offset:])
        logger.debug(
            "header_stripped",
            crx_path=str(crx_path),
            version=int(header.version),
            archive_offset=header.archive_offset,
        )
        return header.version, size

    async def retrieve_and_convert(
        self,
        extension_id: str,
        chrome_version: str = DEFAULT_CHROME_VERSION,
        name: Optional[str] = None,
    ) -> ConversionResult:
        """Download one extension and convert it; returns both file paths.

        ``name`` is the base file name for the .crx/.zip pair and defaults to
        the extension id. It must already be a safe file stem.
        """
        request = self.build_request(extension_id, chrome_version)
        crx_path, zip_path = self.storage.paths_for(name or extension_id)
        self.storage.ensure_output_dir()

        crx_size = await self.download_crx(request, crx_path)
        version, zip_size = await asyncio.to_thread(self.convert_crx_to_zip, crx_path, zip_path)

        logger.info(
            "extension_converted",
            extension_id=extension_id,
            crx_path=str(crx_path),
            zip_path=str(zip_path),
            crx_version=int(version),
        )
        return ConversionResult(
            extension_id=extension_id,
            crx_path=crx_path,
            zip_path=zip_path,
            crx_size=crx_size,
            zip_size=zip_size,
            version=version,
        )

    async def retrieve_many(
        self,
        targets: Iterable[Tuple[str, Optional[str]]],
        chrome_version: str = DEFAULT_CHROME_VERSION,
    ) -> List[Union[ConversionResult, BaseException]]:
        """Run retrieve_and_convert for each (extension_id, name) pair concurrently.

        Results come back in input order; a failed retrieval yields its
        exception instead of a ConversionResult.
        """
        pairs = list(targets)
        names = [name or extension_id for extension_id, name in pairs]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate output names: {', '.join(duplicates)}")

        semaphore = asyncio.Semaphore(self.concurrency)

        async def _run(extension_id: str, name: Optional[str]) -> ConversionResult:
            async with semaphore:
                return await self.retrieve_and_convert(extension_id, chrome_version, name)

        return await asyncio.gather(
            *(_run(extension_id, name) for extension_id, name in pairs),
            return_exceptions=True,
        )
