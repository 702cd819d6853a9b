"""FastAPI app exposing the NSFW image check endpoints."""

from __future__ import annotations

import logging
import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, File, Query, Request, UploadFile, status
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile as StarletteUploadFile

from imgguardrails.config import settings
from imgguardrails.detector import NsfwDetector
from imgguardrails.logger_config import configure_logging
from imgguardrails.rate_limit import RateLimiter
from imgguardrails.schemas import AuditLogsResponse, CheckApproved, StatsResponse

configure_logging(settings.log_level)
log = logging.getLogger("imgguardrails.api")


class GuardrailHTTPError(Exception):
    """Error with a JSON body of the form ``{"error": ..., **extra}``."""

    def __init__(self, status_code: int, error: str, **extra: Any) -> None:
        super().__init__(error)
        self.status_code = status_code
        self.content = {"error": error, **extra}


def guardrail_http_error(request: Request, exc: GuardrailHTTPError):
    return JSONResponse(status_code=exc.status_code, content=exc.content)


@asynccontextmanager
async def lifespan(app: FastAPI):
    detector: NsfwDetector = app.state.detector
    limiter: RateLimiter = app.state.rate_limiter
    log.info(
        "API ready | formats=%s max=%dMB threshold=%.2f rate=%d/%.0fs audit_cap=%d",
        ",".join(detector.config.supported_formats),
        detector.config.max_image_size_mb,
        detector.config.nsfw_confidence_threshold,
        limiter.max_requests,
        limiter.window_seconds,
        detector.audit_log.capacity,
    )
    yield


router = APIRouter(prefix="/api/nsfw-check", tags=["nsfw-check"])


def get_detector(request: Request) -> NsfwDetector:
    return request.app.state.detector


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def _now() -> datetime:
    return datetime.now(timezone.utc)


_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _parse_limit(raw: str | None, default: int, maximum: int) -> int:
    """Leading integer of ``raw`` ("12.5" -> 12); missing, unparsable or 0 -> ``default``."""
    match = _LEADING_INT.match(raw or "")
    value = int(match.group(1)) if match else 0
    if value == 0:
        value = default
    return max(1, min(value, maximum))


@router.post(
    "",
    summary="Check an image before it is uploaded",
    response_model=CheckApproved,
    status_code=status.HTTP_200_OK,
)
async def check_image(
    request: Request,
    file: UploadFile | str | None = File(None, description="Image in JPEG/PNG/WebP/GIF format"),
    detector: NsfwDetector = Depends(get_detector),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> CheckApproved:
    try:
        # Set by upstream auth middleware when present.
        user_id = rate_limiter.key_for(getattr(request.state, "user_id", None))

        if not rate_limiter.allow(user_id):
            raise GuardrailHTTPError(
                status.HTTP_429_TOO_MANY_REQUESTS,
                f"Rate limit exceeded. Maximum {rate_limiter.max_requests} checks "
                f"per {rate_limiter.window_seconds:.0f} seconds.",
                retryAfter=int(rate_limiter.window_seconds),
            )

        # A plain text field named "file" is treated as no upload at all.
        if not isinstance(file, StarletteUploadFile):
            raise GuardrailHTTPError(
                status.HTTP_400_BAD_REQUEST, "No image provided", code="NO_IMAGE"
            )

        if not (file.content_type or "").startswith("image/"):
            raise GuardrailHTTPError(
                status.HTTP_400_BAD_REQUEST, "File must be an image", code="INVALID_FILE_TYPE"
            )

        contents = await file.read()
        file_size = file.size if file.size is not None else len(contents)
        log.info("check start | user=%s name=%s bytes=%d", user_id, file.filename, file_size)

        result = detector.detect(contents, file.filename or "", user_id, file_size)
        confidence = round(result.confidence, 2)

        if result.is_nsfw:
            raise GuardrailHTTPError(
                status.HTTP_403_FORBIDDEN,
                "Image rejected: contains prohibited content",
                code="NSFW_CONTENT_DETECTED",
                details={"category": result.category, "confidence": confidence},
            )

        return CheckApproved(category=result.category, confidence=confidence)
    except GuardrailHTTPError:
        raise
    except Exception:
        log.exception("check endpoint error")
        raise GuardrailHTTPError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Image validation failed",
            code="VALIDATION_ERROR",
        )


# TODO: gate /stats and /audit-logs behind an admin role once the auth
# middleware populates request.state with one.
@router.get("/stats", summary="Aggregate detection statistics", response_model=StatsResponse)
async def detection_stats(detector: NsfwDetector = Depends(get_detector)) -> StatsResponse:
    try:
        stats = detector.get_stats()
    except Exception:
        log.exception("stats endpoint error")
        raise GuardrailHTTPError(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to retrieve statistics"
        )
    return StatsResponse(stats=stats, timestamp=_now())


@router.get("/audit-logs", summary="Most recent audit entries, newest first", response_model=AuditLogsResponse)
async def audit_logs(
    limit: str | None = Query(None, description="Number of entries to return (1-1000, default 100)"),
    detector: NsfwDetector = Depends(get_detector),
) -> AuditLogsResponse:
    try:
        count = _parse_limit(
            limit,
            detector.config.audit_log_default_limit,
            detector.config.audit_log_max_limit,
        )
        logs = detector.get_audit_logs(count)
    except Exception:
        log.exception("audit-logs endpoint error")
        raise GuardrailHTTPError(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to retrieve audit logs"
        )
    return AuditLogsResponse(logs=logs, count=len(logs), timestamp=_now())


def create_app(
    detector: NsfwDetector | None = None,
    rate_limiter: RateLimiter | None = None,
) -> FastAPI:
    """Build the app around explicit service instances (fresh ones by default)."""
    if detector is None:
        detector = NsfwDetector()
    if rate_limiter is None:
        rate_limiter = RateLimiter()

    app = FastAPI(
        title="Image Guardrails API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.detector = detector
    app.state.rate_limiter = rate_limiter
    app.add_exception_handler(GuardrailHTTPError, guardrail_http_error)
    app.include_router(router)
    return app


app = create_app()


def main() -> None:
    uvicorn.run("imgguardrails.api:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
