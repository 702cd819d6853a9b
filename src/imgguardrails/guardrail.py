"""Content classifier interface used by the detection engine."""

from __future__ import annotations

from imgguardrails.schemas import Classification, ImageFormat


class Guardrail:
    def classify(
        self,
        *,
        contents: bytes,
        image_format: ImageFormat,
        file_name: str,
    ) -> Classification:
        raise NotImplementedError
