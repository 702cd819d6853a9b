import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from imgguardrails.api import create_app
from imgguardrails.audit import AuditLog
from imgguardrails.detector import NsfwDetector
from imgguardrails.rate_limit import RateLimiter

# Smallest buffers that carry each signature; not decodable images.
MAGIC_ONLY = {
    "jpeg": b"\xff\xd8\xff\xe0\x00\x10JFIF\x00",
    "png": b"\x89PNG\r\n\x1a\n\x00\x00\x00\x0d",
    "webp": b"RIFF\x24\x00\x00\x00WEBPVP8 ",
    "gif": b"GIF89a\x01\x00\x01\x00",
}


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def make_image():
    def _make(fmt: str = "PNG", size=(100, 100), color=(100, 100, 100)) -> bytes:
        with io.BytesIO() as bio:
            Image.new("RGB", size, color=color).save(bio, format=fmt)
            return bio.getvalue()

    return _make


@pytest.fixture
def png_bytes(make_image) -> bytes:
    return make_image("PNG")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def detector() -> NsfwDetector:
    return NsfwDetector(audit_log=AuditLog())


@pytest.fixture
def rate_limiter() -> RateLimiter:
    return RateLimiter()


@pytest.fixture
def app(detector, rate_limiter):
    return create_app(detector=detector, rate_limiter=rate_limiter)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
