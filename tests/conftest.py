"""Shared test fixtures for the imgrelay test suite."""

from __future__ import annotations

import io
import json
from collections.abc import Callable

import httpx
import pytest
from PIL import Image

from imgrelay.config import RelayConfig
from imgrelay.models import LiveSource, TransformResult


def make_image_bytes(
    width: int,
    height: int,
    fmt: str = "PNG",
    mode: str = "RGB",
    color: object = (40, 120, 200),
) -> bytes:
    """Encode a solid-colour image of the given size in memory."""
    img = Image.new(mode, (width, height), color=color)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


def make_source(
    name: str = "photo.png",
    width: int = 64,
    height: int = 48,
    fmt: str = "PNG",
    media_type: str = "image/png",
) -> LiveSource:
    return LiveSource.from_bytes(name, make_image_bytes(width, height, fmt), media_type)


class RecordingMetricsHook:
    """A metrics backend that records all calls for assertion."""

    def __init__(self) -> None:
        self.increments: list[tuple[str, int, dict | None]] = []
        self.timings: list[tuple[str, float, dict | None]] = []
        self.gauges: list[tuple[str, float, dict | None]] = []

    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        self.increments.append((name, value, tags))

    def timing(self, name: str, ms: float, tags: dict[str, str] | None = None) -> None:
        self.timings.append((name, ms, tags))

    def gauge(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        self.gauges.append((name, value, tags))

    def names(self) -> set[str]:
        return (
            {n for n, _, _ in self.increments}
            | {n for n, _, _ in self.timings}
            | {n for n, _, _ in self.gauges}
        )


class FakeEngine:
    """Transform engine double returning a fixed blob without touching Pillow."""

    def __init__(self, blob: bytes = b"webp-bytes", size: tuple[int, int] = (800, 800)) -> None:
        self.blob = blob
        self.size = size
        self.calls: list[str] = []

    async def transform(self, source: LiveSource) -> TransformResult:
        self.calls.append(source.name)
        return TransformResult(blob=self.blob, width=self.size[0], height=self.size[1])


class FakeTransfer:
    """Transfer double returning ``https://cdn.test/<name>`` for every upload."""

    def __init__(self) -> None:
        self.calls: list[tuple[bytes, str]] = []

    async def upload(self, blob: bytes, suggested_name: str) -> str:
        self.calls.append((blob, suggested_name))
        return f"https://cdn.test/{suggested_name}"


@pytest.fixture
def config() -> RelayConfig:
    """Default test configuration pointing at a fake store."""
    return RelayConfig(
        cloud_name="demo",
        upload_preset="unsigned-preset",
        folder="products",
        base_url="https://api.example.test/v1_1",
    )


@pytest.fixture
def metrics() -> RecordingMetricsHook:
    return RecordingMetricsHook()


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def fake_transfer() -> FakeTransfer:
    return FakeTransfer()


@pytest.fixture
def mock_store() -> Callable[..., httpx.AsyncClient]:
    """Factory for an ``httpx.AsyncClient`` backed by a handler function.

    The handler receives the ``httpx.Request``; requests are also recorded
    on the returned client's ``seen`` list.
    """
    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        seen: list[httpx.Request] = []

        def recording(request: httpx.Request) -> httpx.Response:
            request.read()
            seen.append(request)
            return handler(request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(recording))
        client.seen = seen
        return client

    return factory


def json_response(status_code: int, body: object) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(body).encode(),
                          headers={"content-type": "application/json"})
