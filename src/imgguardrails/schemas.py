"""Pydantic schemas for the detection engine and the FastAPI surface."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Category = Literal["safe", "nsfw", "uncertain"]


class ImageFormat(str, Enum):
    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"
    GIF = "gif"


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FormatCheck(BaseModel):
    """Outcome of magic-byte sniffing."""

    valid: bool
    format: ImageFormat | None = None


class Dimensions(BaseModel):
    width: int
    height: int


class Classification(BaseModel):
    """Verdict returned by a content classifier."""

    confidence: float = Field(..., ge=0.0, le=1.0)
    category: Category


class DetectionResult(CamelModel):
    """Admission decision for a single image."""

    is_nsfw: bool = Field(..., description="True when the image must be rejected")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Confidence that the content is prohibited")
    category: Category
    error: str | None = Field(None, description="Set only when a hard validation failure occurred")

    @classmethod
    def reject(cls, error: str) -> "DetectionResult":
        """Hard reject: policy or validation failure, never a content judgement."""
        return cls(is_nsfw=True, confidence=1.0, category="nsfw", error=error)


class AuditLogEntry(CamelModel):
    """One immutable record per detection call."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    timestamp: datetime | None = None
    user_id: str | None = None
    file_name: str = ""
    is_nsfw: bool
    confidence: float
    file_size: int
    dimensions: Dimensions | None = None
    error: str | None = None


class AuditStats(CamelModel):
    total_checks: int
    blocked_count: int
    allowed_count: int
    block_rate: float


# HTTP payloads


class CheckApproved(BaseModel):
    approved: Literal[True] = True
    category: Category
    confidence: float


class StatsResponse(BaseModel):
    stats: AuditStats
    timestamp: datetime


class AuditLogsResponse(BaseModel):
    logs: list[AuditLogEntry]
    count: int
    timestamp: datetime


class ImageValidationResult(BaseModel):
    """Client-side outcome of validating an image before upload."""

    approved: bool
    category: Category | None = None
    confidence: float | None = None
    error: str | None = None
    code: str | None = None
