import re
from dataclasses import dataclass
from urllib.parse import urlparse

import structlog

logger = structlog.get_logger(__name__)

# Chrome extension ids are 32 chars drawn from a-p (hex digits shifted by 'a')
EXTENSION_ID_RE = re.compile(r'^[a-p]{32}$')

_UNSAFE_NAME_CHARS = re.compile(r'[^a-zA-Z0-9_\-]')


@dataclass(frozen=True)
class ExtensionRef:
    extension_id: str
    name: str


def validate_extension_id(extension_id: str) -> bool:
    return bool(EXTENSION_ID_RE.match(extension_id or ""))


def sanitize_name(name: str) -> str:
    return _UNSAFE_NAME_CHARS.sub("", name)


def parse_extension_ref(value: str) -> ExtensionRef:
    """Turn a store URL or a bare extension id into an ExtensionRef.

    For URLs like https://chromewebstore.google.com/detail/<name>/<id> the id
    is the last path segment and the segment before it is taken as a friendly
    name. That guess is not guaranteed to match the real extension name, and
    falls back to the id whenever it is missing or sanitizes to nothing.

    Raises:
        ValueError: no valid extension id could be found.
    """
    value = (value or "").strip()
    if not value:
        raise ValueError("Empty extension reference")

    if validate_extension_id(value):
        return ExtensionRef(extension_id=value, name=value)

    parsed = urlparse(value)
    if parsed.scheme not in ('http', 'https'):
        raise ValueError(f"Not an extension id or store URL: {value}")

    segments = [s for s in parsed.path.split('/') if s]
    if not segments or not validate_extension_id(segments[-1]):
        logger.warning("extension_id_not_found", url=value)
        raise ValueError(f"No valid extension id in URL: {value}")

    extension_id = segments[-1]
    name = sanitize_name(segments[-2]) if len(segments) >= 2 else ""
    if not name or name in ('detail', 'webstore'):
        name = extension_id

    return ExtensionRef(extension_id=extension_id, name=name)
