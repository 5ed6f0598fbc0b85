"""
Local file storage for downloaded containers and the archives derived from them.

Writes go to a ``.part`` sibling first and are moved into place only once
complete, so a failed download never leaves a half-written file behind.
"""

import os
from pathlib import Path
from typing import Tuple, Union

import structlog

from .fetcher import FetchResult

logger = structlog.get_logger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


def _part_path(path: Path) -> Path:
    return path.with_name(path.name + ".part")


class ExtensionStorage:
    def __init__(self, output_dir: Union[str, Path] = "extensions", chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.output_dir = Path(output_dir)
        self.chunk_size = chunk_size

    def ensure_output_dir(self) -> Path:
        """Create the output directory (and parents) if it does not exist yet"""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        return self.output_dir

    def paths_for(self, name: str) -> Tuple[Path, Path]:
        """Return the (crx, zip) paths sharing the base name ``name``"""
        if not name or name in (".", "..") or "/" in name or "\\" in name or os.sep in name:
            raise ValueError(f"Invalid output name: {name!r}")
        return self.output_dir / f"{name}.crx", self.output_dir / f"{name}.zip"

    async def stream_to_file(self, result: FetchResult, path: Union[str, Path]) -> int:
        """Stream the response body into ``path`` and return the number of bytes written.

        The response is closed on every exit path. An existing file at ``path``
        is replaced only after the whole body has been written.
        """
        path = Path(path)
        part_path = _part_path(path)
        written = 0
        try:
            with open(part_path, "wb") as f:
                async for chunk in result.aiter_bytes(self.chunk_size):
                    f.write(chunk)
                    written += len(chunk)
            os.replace(part_path, path)
        except BaseException:
            part_path.unlink(missing_ok=True)
            raise
        finally:
            await result.aclose()

        logger.info("container_saved", path=str(path), size=written)
        return written

    def read(self, path: Union[str, Path]) -> bytes:
        return Path(path).read_bytes()

    def write_archive(self, path: Union[str, Path], data: bytes) -> int:
        """Write ``data`` to ``path`` through a ``.part`` file."""
        path = Path(path)
        part_path = _part_path(path)
        try:
            part_path.write_bytes(data)
            os.replace(part_path, path)
        except BaseException:
            part_path.unlink(missing_ok=True)
            raise

        logger.info("archive_saved", path=str(path), size=len(data))
        return len(data)
