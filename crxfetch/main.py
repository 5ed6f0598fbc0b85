"""
Entrypoint: load config and .env, init logging, download every extension given
on the command line and convert it to a ZIP. Exits non-zero if anything failed.

    crxfetch <extension_url_or_id> [...] [-v CHROME_VERSION] [-o OUTPUT_DIR]
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import httpx
import structlog
from dotenv import find_dotenv, load_dotenv

from .config import Config
from .errors import CrxFetchError
from .fetcher import HTTPFetcher
from .request import DEFAULT_CHROME_VERSION, DEFAULT_UPDATE_URL
from .storage import DEFAULT_CHUNK_SIZE, ExtensionStorage
from .url_parser import ExtensionRef, parse_extension_ref
from .worker import Retriever

logger = structlog.get_logger(__name__)


def setup_logging(level: str = "INFO", fmt: str = "console"):
    """Configure stdlib logging and structlog on top of it."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, str(level).upper(), logging.INFO),
        force=True,
    )

    renderer = structlog.processors.JSONRenderer() if fmt == "json" else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crxfetch",
        description="Download Chrome extensions and convert them from CRX to plain ZIP.",
    )
    parser.add_argument("extensions", nargs="+", help="Chrome Web Store URL or 32-character extension id")
    parser.add_argument("-v", "--chrome-version", help="Chrome version to impersonate")
    parser.add_argument("-o", "--output-dir", help="Directory for the .crx and .zip files")
    parser.add_argument("--max-redirects", type=int, help="Maximum number of redirects to follow")
    parser.add_argument("--config", help="Path to an alternative config.yaml")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


async def run(
    refs: List[ExtensionRef],
    cfg: Config,
    chrome_version: Optional[str] = None,
    output_dir: Optional[str] = None,
    max_redirects: Optional[int] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> list:
    """Wire fetcher, storage and retriever together and process ``refs``."""
    fetcher_cfg = cfg.fetcher
    version = str(chrome_version or fetcher_cfg.get('chrome_version', DEFAULT_CHROME_VERSION))
    if max_redirects is None:
        max_redirects = int(fetcher_cfg.get('max_redirects', 5))

    storage = ExtensionStorage(
        output_dir=output_dir or cfg.output.get('directory', 'extensions'),
        chunk_size=int(fetcher_cfg.get('chunk_size', DEFAULT_CHUNK_SIZE)),
    )

    async with HTTPFetcher(
        timeout=fetcher_cfg.get('timeout', 30.0),
        max_redirects=max_redirects,
        transport=transport,
    ) as fetcher:
        retriever = Retriever(
            fetcher=fetcher,
            storage=storage,
            update_url=fetcher_cfg.get('update_url', DEFAULT_UPDATE_URL),
            concurrency=int(cfg.worker.get('concurrency', 4)),
        )
        logger.info("using_chrome_version", chrome_version=version, output_dir=str(storage.output_dir))
        return await retriever.retrieve_many(
            [(ref.extension_id, ref.name) for ref in refs],
            chrome_version=version,
        )


def main(argv: Optional[List[str]] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> int:
    """Main entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)

    load_dotenv(find_dotenv(usecwd=True))

    try:
        cfg = Config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    log_cfg = cfg.logging
    setup_logging(
        level="DEBUG" if args.verbose else log_cfg.get('level', 'INFO'),
        fmt=log_cfg.get('format', 'console'),
    )

    try:
        refs = [parse_extension_ref(value) for value in args.extensions]
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        results = asyncio.run(run(
            refs,
            cfg,
            chrome_version=args.chrome_version,
            output_dir=args.output_dir,
            max_redirects=args.max_redirects,
            transport=transport,
        ))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    failed = 0
    for ref, result in zip(refs, results):
        if isinstance(result, (CrxFetchError, OSError)):
            failed += 1
            logger.error("extension_failed", extension_id=ref.extension_id, error_type=type(result).__name__, error=str(result))
            print(f"Error: {ref.name} ({ref.extension_id}): {result}", file=sys.stderr)
        elif isinstance(result, Exception):
            failed += 1
            logger.error("extension_crashed", extension_id=ref.extension_id, error_type=type(result).__name__, exc_info=result)
            print(f"Error: {ref.name} ({ref.extension_id}): unexpected {type(result).__name__}: {result}", file=sys.stderr)
        elif isinstance(result, BaseException):
            raise result
        else:
            print(f"{ref.name}: {result.crx_path} -> {result.zip_path}")

    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
