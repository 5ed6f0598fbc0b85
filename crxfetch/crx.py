"""
CRX header parsing.

CRX2 structure:
   0-3:  "Cr24"
   4-7:  version (LE u32) => 2
   8-11: public key length (LE u32)
  12-15: signature length (LE u32)
  [public key] [signature] [ZIP data]

CRX3 structure:
   0-3:  "Cr24"
   4-7:  version (LE u32) => 3
   8-11: header size (LE u32)
  [serialized protobuf header] [ZIP data]
"""

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Dict, Optional

from .errors import FormatError, UnsupportedVersionError

CRX_MAGIC = b"Cr24"

_U32 = struct.Struct("<I")


class CrxVersion(IntEnum):
    V2 = 2
    V3 = 3


@dataclass(frozen=True)
class CrxHeader:
    magic: bytes
    version: CrxVersion
    archive_offset: int
    public_key_length: Optional[int] = None
    signature_length: Optional[int] = None
    header_size: Optional[int] = None


def _read_u32(buffer: bytes, offset: int, field: str) -> int:
    if len(buffer) < offset + _U32.size:
        raise FormatError(f"truncated before {field} at offset {offset}")
    return _U32.unpack_from(buffer, offset)[0]


def _check_offset(buffer: bytes, offset: int) -> int:
    if offset > len(buffer):
        raise FormatError(
            f"header claims data starts at {offset} but file is {len(buffer)} bytes"
        )
    return offset


def _parse_v2(buffer: bytes) -> CrxHeader:
    public_key_length = _read_u32(buffer, 8, "public key length")
    signature_length = _read_u32(buffer, 12, "signature length")
    offset = _check_offset(buffer, 16 + public_key_length + signature_length)
    return CrxHeader(
        magic=CRX_MAGIC,
        version=CrxVersion.V2,
        archive_offset=offset,
        public_key_length=public_key_length,
        signature_length=signature_length,
    )


def _parse_v3(buffer: bytes) -> CrxHeader:
    header_size = _read_u32(buffer, 8, "header size")
    offset = _check_offset(buffer, 12 + header_size)
    return CrxHeader(
        magic=CRX_MAGIC,
        version=CrxVersion.V3,
        archive_offset=offset,
        header_size=header_size,
    )


_LAYOUTS: Dict[CrxVersion, Callable[[bytes], CrxHeader]] = {
    CrxVersion.V2: _parse_v2,
    CrxVersion.V3: _parse_v3,
}

if set(_LAYOUTS) != set(CrxVersion):
    raise RuntimeError("every CrxVersion needs a header layout")


def parse_header(buffer: bytes) -> CrxHeader:
    """Validate the CRX header of ``buffer`` and describe where the ZIP data starts.

    Raises:
        FormatError: bad magic, truncated header, or length fields pointing
            past the end of the buffer.
        UnsupportedVersionError: version field other than 2 or 3.
    """
    if len(buffer) < len(CRX_MAGIC) or buffer[:4] != CRX_MAGIC:
        raise FormatError('missing "Cr24" magic')

    raw_version = _read_u32(buffer, 4, "version")
    try:
        version = CrxVersion(raw_version)
    except ValueError:
        raise UnsupportedVersionError(raw_version) from None

    return _LAYOUTS[version](buffer)


def compute_archive_offset(buffer: bytes) -> int:
    """Return the offset of the ZIP data inside a CRX2/CRX3 buffer."""
    return parse_header(buffer).archive_offset


def extract_archive(buffer: bytes) -> bytes:
    """Strip the CRX header and return the embedded ZIP bytes."""
    return buffer[compute_archive_offset(buffer):]
