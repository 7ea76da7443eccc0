from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

from reelhive.core.providers.base import (
    GenerationError,
    GenerationRequest,
    GenerationResult,
    GenerationStatus,
    ResultMetadata,
    VideoOutput,
)
from reelhive.core.providers.http_adapter import HttpProviderAdapter, parse_timestamp

_RESOLUTIONS = {
    "16:9": "1280x720",
    "9:16": "720x1280",
    "4:3": "960x720",
    "1:1": "720x720",
}

_QUALITY = {
    "draft": "fast",
    "standard": "balanced",
    "high": "quality",
    "premium": "ultra",
}


class PikaAdapter(HttpProviderAdapter):
    name = "pika"
    default_base_url = "https://api.pika.art/v1"
    generate_path = "/videos/generate"
    max_duration_seconds = 60
    supported_aspect_ratios = frozenset({"16:9", "9:16", "4:3", "1:1"})
    cost_per_second = 0.08
    credential_pattern = re.compile(r"^pk-[a-zA-Z0-9_-]{20,}$")
    status_map = {
        "pending": GenerationStatus.QUEUED,
        "queued": GenerationStatus.QUEUED,
        "waiting": GenerationStatus.QUEUED,
        "generating": GenerationStatus.PROCESSING,
        "processing": GenerationStatus.PROCESSING,
        "completed": GenerationStatus.COMPLETED,
        "finished": GenerationStatus.COMPLETED,
        "success": GenerationStatus.COMPLETED,
        "failed": GenerationStatus.FAILED,
        "error": GenerationStatus.FAILED,
        "cancelled": GenerationStatus.FAILED,
        "timeout": GenerationStatus.FAILED,
    }

    def build_payload(self, request: GenerationRequest) -> dict[str, Any]:
        s = request.settings
        return {
            "prompt": request.prompt,
            "duration": s.duration,
            "aspect_ratio": s.aspect_ratio,
            "quality": _QUALITY.get(s.quality, "balanced"),
            "style": s.style,
            "seed": s.seed,
            "motion_strength": s.motion_intensity or 0.5,
            "camera_motion": s.camera_movement or "static",
            "fps": s.frame_rate or 24,
            "reference_images": list(request.reference_images),
        }

    def remote_error(self, data: dict[str, Any]) -> GenerationError | None:
        error = data.get("error")
        if not error or not isinstance(error, dict):
            return super().remote_error(data)
        # pika reports the error category under "type"
        return GenerationError(
            message=error.get("message") or "Pika generation failed",
            code=error.get("type") or "PIKA_ERROR",
            retryable=error.get("retryable") is not False,
        )

    def _video(self, data: dict[str, Any], metadata: ResultMetadata) -> VideoOutput | None:
        video = data.get("video")
        if not video:
            return None
        return VideoOutput(video_url=video.get("url", ""), thumbnail_url=video.get("thumbnail_url"), metadata=metadata)

    def parse_generation(
        self,
        data: dict[str, Any],
        request: GenerationRequest,
        generation_id: str,
        cost: float,
    ) -> GenerationResult:
        s = request.settings
        status = self.map_status(data.get("status"))
        video = data.get("video") or {}
        metadata = ResultMetadata(
            duration=s.duration,
            resolution=_RESOLUTIONS.get(s.aspect_ratio, "1280x720"),
            fps=s.frame_rate or 24,
            file_size=video.get("file_size") or 0,
            generation_time=data.get("generation_time_seconds") or 0,
            cost=cost,
        )
        eta = parse_timestamp(data.get("estimated_completion"))
        if eta is None and status in {GenerationStatus.QUEUED, GenerationStatus.PROCESSING}:
            eta = self.estimate_completion_time(max(1.0, s.duration * 0.25))
        return GenerationResult(
            id=data.get("id") or generation_id,
            provider=self.name,
            status=status,
            progress=data.get("progress") or 0,
            result=self._video(data, metadata),
            error=self.remote_error(data),
            estimated_completion_time=eta,
            created_at=datetime.now(timezone.utc),
            completed_at=parse_timestamp(data.get("completed_at")),
        )

    def status_path(self, generation_id: str) -> str:
        return f"/videos/{generation_id}"

    def parse_status(self, data: dict[str, Any], generation_id: str) -> GenerationResult:
        video = data.get("video") or {}
        metadata = ResultMetadata(
            duration=video.get("duration") or 0,
            resolution=video.get("resolution") or "1280x720",
            fps=video.get("fps") or 24,
            file_size=video.get("file_size") or 0,
            generation_time=data.get("generation_time_seconds") or 0,
            cost=data.get("cost") or 0,
        )
        return GenerationResult(
            id=generation_id,
            provider=self.name,
            status=self.map_status(data.get("status")),
            progress=data.get("progress") or 0,
            result=self._video(data, metadata),
            error=self.remote_error(data),
            estimated_completion_time=parse_timestamp(data.get("estimated_completion")),
            created_at=parse_timestamp(data.get("created_at")) or datetime.now(timezone.utc),
            completed_at=parse_timestamp(data.get("completed_at")),
        )

    def cancel(self, generation_id: str) -> bool:
        return self._cancel_request("POST", f"/videos/{generation_id}/cancel")
