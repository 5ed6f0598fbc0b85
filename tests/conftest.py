"""Shared fixtures: synthetic CRX containers and a recording mock transport."""

import struct
from typing import Callable, Dict, List

import httpx
import pytest


def build_crx2(public_key: bytes, signature: bytes, payload: bytes) -> bytes:
    return (
        b"Cr24"
        + struct.pack("<I", 2)
        + struct.pack("<I", len(public_key))
        + struct.pack("<I", len(signature))
        + public_key
        + signature
        + payload
    )


def build_crx3(header: bytes, payload: bytes) -> bytes:
    return b"Cr24" + struct.pack("<I", 3) + struct.pack("<I", len(header)) + header + payload


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


class TrackedStream(httpx.AsyncByteStream):
    """Response body that remembers whether it was read to the end and closed."""

    def __init__(self, body: bytes = b"body"):
        self.body = body
        self.exhausted = False
        self.closed = False

    async def __aiter__(self):
        yield self.body
        self.exhausted = True

    async def aclose(self):
        self.closed = True


@pytest.fixture
def crx3_container() -> Dict[str, bytes]:
    """A 1000 byte CRX3 container with a 37 byte header."""
    header = bytes(range(37))
    payload = b"PK\x03\x04" + bytes((i * 7) % 256 for i in range(1000 - 12 - 37 - 4))
    data = build_crx3(header, payload)
    assert len(data) == 1000
    return {"data": data, "payload": payload}
