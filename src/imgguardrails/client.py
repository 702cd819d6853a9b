"""Client for validating images against the check endpoint before upload."""

from __future__ import annotations

import logging
from typing import Iterable, List, Tuple

import httpx

from imgguardrails.config import settings
from imgguardrails.schemas import ImageValidationResult

log = logging.getLogger(__name__)

CHECK_PATH = "/api/nsfw-check"

# Codes that end a batch early.
_BATCH_STOP_CODES = {"NETWORK_ERROR", "RATE_LIMIT_EXCEEDED"}

_ERROR_MESSAGES = {
    "INVALID_FILE_TYPE": "Please upload an image file (PNG, JPG, WebP, GIF)",
    "NSFW_CONTENT_DETECTED": "This image contains prohibited content. Please select a different image.",
    "RATE_LIMIT_EXCEEDED": "Too many uploads. Please wait a moment and try again.",
    "NETWORK_ERROR": "Network connection error. Please check your internet and try again.",
    "VALIDATION_ERROR": "Image validation failed. Please try again or contact support.",
}


def _json_or_empty(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class ImageValidationClient:
    """
    Pre-upload checks: a cheap local MIME and size check, then the server.

    Pass ``http_client`` to reuse a connection pool or to route requests
    in-process (e.g. ``httpx.ASGITransport``); otherwise a short-lived client
    is opened per call.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        http_client: httpx.AsyncClient | None = None,
        max_file_size_mb: int = settings.max_image_size_mb,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.max_file_size_mb = max_file_size_mb
        self._http_client = http_client
        self._timeout = timeout

    async def _post(self, files: dict) -> httpx.Response:
        url = f"{self.base_url}{CHECK_PATH}"
        if self._http_client is not None:
            return await self._http_client.post(url, files=files)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(url, files=files)

    async def validate_image(
        self,
        file_name: str,
        contents: bytes,
        content_type: str,
    ) -> ImageValidationResult:
        if not (content_type or "").startswith("image/"):
            return ImageValidationResult(
                approved=False,
                error="File must be an image (PNG, JPG, WebP, GIF)",
                code="INVALID_FILE_TYPE",
            )

        if len(contents) > self.max_file_size_mb * 1024 * 1024:
            return ImageValidationResult(
                approved=False,
                error=f"File size exceeds {self.max_file_size_mb}MB limit",
                code="FILE_TOO_LARGE",
            )

        log.info("sending image to server | name=%s bytes=%d", file_name, len(contents))
        try:
            response = await self._post({"file": (file_name, contents, content_type)})
        except httpx.HTTPError as exc:
            log.error("network error validating %s: %s", file_name, exc)
            return ImageValidationResult(
                approved=False,
                error="Network error. Please check your connection and try again.",
                code="NETWORK_ERROR",
            )

        payload = _json_or_empty(response)

        if response.is_error:
            log.warning(
                "server validation failed | status=%d error=%s",
                response.status_code,
                payload.get("error"),
            )
            if response.status_code == httpx.codes.TOO_MANY_REQUESTS:
                return ImageValidationResult(
                    approved=False,
                    error="Too many validation requests. Please wait a moment and try again.",
                    code="RATE_LIMIT_EXCEEDED",
                )
            if response.status_code == httpx.codes.BAD_REQUEST:
                return ImageValidationResult(
                    approved=False,
                    error="Image file is invalid or corrupted. Please try a different image.",
                    code="INVALID_IMAGE",
                )
            return ImageValidationResult(
                approved=False,
                error=payload.get("error") or "Image validation failed. Please try again.",
                code=payload.get("code") or "VALIDATION_ERROR",
            )

        if not payload.get("approved"):
            log.warning("image rejected | name=%s reason=%s", file_name, payload.get("category"))
            return ImageValidationResult(
                approved=False,
                error="This image cannot be uploaded. Please select a different image.",
                code="CONTENT_REJECTED",
            )

        log.info("image approved | name=%s", file_name)
        return ImageValidationResult(
            approved=True,
            category=payload.get("category") or "safe",
            confidence=payload.get("confidence"),
        )

    async def validate_images(
        self,
        files: Iterable[Tuple[str, bytes, str]],
    ) -> List[Tuple[str, ImageValidationResult]]:
        """Validate ``(file_name, contents, content_type)`` items one at a time."""
        results: List[Tuple[str, ImageValidationResult]] = []
        for file_name, contents, content_type in files:
            result = await self.validate_image(file_name, contents, content_type)
            results.append((file_name, result))
            if result.code in _BATCH_STOP_CODES:
                break
        return results


def get_validation_error_message(result: ImageValidationResult) -> str:
    """User-facing text for a validation outcome; empty when approved."""
    if result.approved:
        return ""
    if result.code == "FILE_TOO_LARGE":
        return result.error or "File size is too large"
    if result.code in _ERROR_MESSAGES:
        return _ERROR_MESSAGES[result.code]
    return result.error or "Image validation failed. Please try again."
