"""NSFW admission decision for uploaded images.

Checks run in a fixed order and the first failing one decides:
declared size, emptiness, format signature, optional dimensions, and
finally the content classifier. Any unexpected error rejects the image.
Every call leaves exactly one entry in the audit log.
"""

from __future__ import annotations

import logging
import time

from imgguardrails.audit import AuditLog
from imgguardrails.config import Settings, settings
from imgguardrails.formats import validate_image_bytes
from imgguardrails.guardrail import Guardrail
from imgguardrails.guardrails.stub import StubGuardrail
from imgguardrails.imaging import exceeds_dimension, read_dimensions
from imgguardrails.schemas import AuditLogEntry, AuditStats, DetectionResult, Dimensions

log = logging.getLogger(__name__)

FILE_TOO_LARGE = "File size exceeds limit"
EMPTY_FILE = "Empty file"
INVALID_FORMAT = "Invalid image format"
DIMENSIONS_TOO_LARGE = "Image dimensions exceed limit"


class NsfwDetector:
    def __init__(
        self,
        audit_log: AuditLog | None = None,
        guardrail: Guardrail | None = None,
        config: Settings = settings,
    ) -> None:
        self.config = config
        if audit_log is None:
            audit_log = AuditLog(capacity=config.audit_log_capacity)
        self.audit_log = audit_log
        self.guardrail = guardrail or StubGuardrail()

    def detect(
        self,
        contents: bytes,
        file_name: str,
        user_id: str | None = None,
        file_size: int | None = None,
    ) -> DetectionResult:
        """Decide whether an upload must be rejected. Never raises."""
        start_time = time.perf_counter()
        dimensions: Dimensions | None = None

        try:
            if file_size and file_size > self.config.max_image_size_bytes:
                result, logged_size = DetectionResult.reject(FILE_TOO_LARGE), file_size
            elif len(contents) == 0:
                result, logged_size = DetectionResult.reject(EMPTY_FILE), 0
            else:
                logged_size = file_size or len(contents)
                result, dimensions = self._inspect(contents, file_name)
        except Exception as exc:
            log.exception("validation error, rejecting for safety | file=%s", file_name)
            result, logged_size, dimensions = DetectionResult.reject(str(exc)), 0, None

        try:
            entry = AuditLogEntry(
                user_id=user_id,
                file_name=file_name,
                is_nsfw=result.is_nsfw,
                confidence=result.confidence,
                file_size=logged_size,
                dimensions=dimensions,
                error=result.error,
            )
        except Exception as exc:
            # Malformed caller metadata: record a reject with coerced fields.
            log.exception("invalid audit fields, rejecting for safety | file=%s", file_name)
            result = DetectionResult.reject(str(exc))
            entry = AuditLogEntry(
                user_id=None if user_id is None else str(user_id),
                file_name="" if file_name is None else str(file_name),
                is_nsfw=True,
                confidence=result.confidence,
                file_size=0,
                error=result.error,
            )

        self.audit_log.append(entry)

        duration_ms = (time.perf_counter() - start_time) * 1000
        log.info(
            "check done in %.2f ms | file=%s approved=%s error=%s",
            duration_ms,
            file_name,
            not result.is_nsfw,
            result.error,
        )
        return result

    def _inspect(self, contents: bytes, file_name: str) -> tuple[DetectionResult, Dimensions | None]:
        validation = validate_image_bytes(contents, self.config.supported_formats)
        if not validation.valid or validation.format is None:
            return DetectionResult.reject(INVALID_FORMAT), None

        dimensions = read_dimensions(contents)
        if self.config.enforce_max_dimension and exceeds_dimension(
            dimensions, self.config.max_image_dimension
        ):
            return DetectionResult.reject(DIMENSIONS_TOO_LARGE), dimensions

        verdict = self.guardrail.classify(
            contents=contents,
            image_format=validation.format,
            file_name=file_name,
        )
        is_nsfw = verdict.confidence > self.config.nsfw_confidence_threshold
        if is_nsfw:
            category = "nsfw"
        elif verdict.category == "nsfw":
            # Below threshold: the classifier suspects it but not enough to block.
            category = "uncertain"
        else:
            category = verdict.category
        log.debug(
            "classified | file=%s format=%s confidence=%.2f",
            file_name,
            validation.format.value,
            verdict.confidence,
        )
        return (
            DetectionResult(
                is_nsfw=is_nsfw,
                confidence=verdict.confidence,
                category=category,
            ),
            dimensions,
        )

    # Audit queries, exposed for the HTTP layer and admin tooling.

    def get_audit_logs(self, limit: int | None = None) -> list[AuditLogEntry]:
        if limit is None:
            limit = self.config.audit_log_default_limit
        return self.audit_log.query(limit)

    def get_stats(self) -> AuditStats:
        return self.audit_log.stats()

    def clear_audit_logs(self) -> None:
        self.audit_log.clear()
