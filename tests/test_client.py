import httpx
import pytest

from imgguardrails.api import create_app
from imgguardrails.client import ImageValidationClient, get_validation_error_message
from imgguardrails.rate_limit import RateLimiter
from imgguardrails.schemas import ImageValidationResult


def _asgi_client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


def _mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")


@pytest.mark.asyncio
async def test_approved_image(app, png_bytes):
    async with _asgi_client(app) as http:
        validator = ImageValidationClient("http://test", http_client=http)
        result = await validator.validate_image("photo.png", png_bytes, "image/png")

    assert result.approved is True
    assert result.category == "safe"
    assert result.confidence == 0.15
    assert get_validation_error_message(result) == ""


@pytest.mark.asyncio
async def test_rejected_image_keeps_server_code(app):
    async with _asgi_client(app) as http:
        validator = ImageValidationClient("http://test", http_client=http)
        result = await validator.validate_image("fake.jpg", b"not an image", "image/jpeg")

    assert result.approved is False
    assert result.code == "NSFW_CONTENT_DETECTED"
    assert result.error == "Image rejected: contains prohibited content"
    assert "prohibited content" in get_validation_error_message(result)


@pytest.mark.asyncio
async def test_non_image_rejected_locally(app, detector, png_bytes):
    async with _asgi_client(app) as http:
        validator = ImageValidationClient("http://test", http_client=http)
        result = await validator.validate_image("notes.txt", png_bytes, "text/plain")

    assert result.code == "INVALID_FILE_TYPE"
    assert detector.get_stats().total_checks == 0


@pytest.mark.asyncio
async def test_file_too_large_rejected_locally(app, detector, png_bytes):
    async with _asgi_client(app) as http:
        validator = ImageValidationClient("http://test", http_client=http, max_file_size_mb=1)
        result = await validator.validate_image("big.png", png_bytes + bytes(1024 * 1024), "image/png")

    assert result.code == "FILE_TOO_LARGE"
    assert get_validation_error_message(result) == "File size exceeds 1MB limit"
    assert detector.get_stats().total_checks == 0


@pytest.mark.asyncio
async def test_batch_stops_on_rate_limit(detector, png_bytes):
    app = create_app(detector=detector, rate_limiter=RateLimiter(max_requests=1))
    files = [(f"image-{i}.png", png_bytes, "image/png") for i in range(3)]

    async with _asgi_client(app) as http:
        validator = ImageValidationClient("http://test", http_client=http)
        results = await validator.validate_images(files)

    assert [name for name, _ in results] == ["image-0.png", "image-1.png"]
    assert results[0][1].approved is True
    assert results[1][1].code == "RATE_LIMIT_EXCEEDED"


@pytest.mark.asyncio
async def test_batch_continues_past_content_rejections(app, png_bytes):
    files = [
        ("bad.png", b"garbage bytes", "image/png"),
        ("good.png", png_bytes, "image/png"),
    ]
    async with _asgi_client(app) as http:
        validator = ImageValidationClient("http://test", http_client=http)
        results = await validator.validate_images(files)

    assert [r.approved for _, r in results] == [False, True]


@pytest.mark.asyncio
async def test_network_error(png_bytes):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _mock_client(handler) as http:
        validator = ImageValidationClient("http://test", http_client=http)
        results = await validator.validate_images(
            [("a.png", png_bytes, "image/png"), ("b.png", png_bytes, "image/png")]
        )

    assert len(results) == 1
    assert results[0][1].code == "NETWORK_ERROR"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status_code,body,expected_code",
    [
        (400, {"error": "No image provided", "code": "NO_IMAGE"}, "INVALID_IMAGE"),
        (500, {"error": "Image validation failed", "code": "VALIDATION_ERROR"}, "VALIDATION_ERROR"),
        (502, None, "VALIDATION_ERROR"),
        (200, {"approved": False, "category": "nsfw"}, "CONTENT_REJECTED"),
    ],
)
async def test_server_response_mapping(png_bytes, status_code, body, expected_code):
    def handler(request: httpx.Request) -> httpx.Response:
        if body is None:
            return httpx.Response(status_code, text="Bad Gateway")
        return httpx.Response(status_code, json=body)

    async with _mock_client(handler) as http:
        validator = ImageValidationClient("http://test", http_client=http)
        result = await validator.validate_image("a.png", png_bytes, "image/png")

    assert result.approved is False
    assert result.code == expected_code


@pytest.mark.parametrize(
    "code,expected",
    [
        ("INVALID_FILE_TYPE", "Please upload an image file (PNG, JPG, WebP, GIF)"),
        ("RATE_LIMIT_EXCEEDED", "Too many uploads. Please wait a moment and try again."),
        ("VALIDATION_ERROR", "Image validation failed. Please try again or contact support."),
        ("CONTENT_REJECTED", "custom error"),
    ],
)
def test_error_messages(code, expected):
    result = ImageValidationResult(approved=False, code=code, error="custom error")
    assert get_validation_error_message(result) == expected


def test_error_message_fallback():
    result = ImageValidationResult(approved=False)
    assert get_validation_error_message(result) == "Image validation failed. Please try again."
