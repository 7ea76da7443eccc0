from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

from reelhive.core.providers.base import (
    GenerationRequest,
    GenerationResult,
    GenerationStatus,
    ResultMetadata,
    VideoOutput,
)
from reelhive.core.providers.http_adapter import HttpProviderAdapter, parse_timestamp

_RESOLUTIONS = {
    "16:9": "1920x1080",
    "9:16": "1080x1920",
    "4:3": "1440x1080",
    "1:1": "1080x1080",
}

_ASPECT_RATIOS = {
    "16:9": "1920:1080",
    "9:16": "1080:1920",
    "4:3": "1440:1080",
    "1:1": "1080:1080",
}

_QUALITY = {
    "draft": "low",
    "standard": "medium",
    "high": "high",
    "premium": "ultra",
}


class RunwayAdapter(HttpProviderAdapter):
    name = "runway"
    default_base_url = "https://api.runwayml.com/v1"
    generate_path = "/generate"
    max_duration_seconds = 120
    supported_aspect_ratios = frozenset({"16:9", "9:16", "4:3", "1:1"})
    cost_per_second = 0.12
    credential_pattern = re.compile(r"^rw-[a-zA-Z0-9_-]{32,}$")
    status_map = {
        "pending": GenerationStatus.QUEUED,
        "queued": GenerationStatus.QUEUED,
        "running": GenerationStatus.PROCESSING,
        "processing": GenerationStatus.PROCESSING,
        "completed": GenerationStatus.COMPLETED,
        "successful": GenerationStatus.COMPLETED,
        "failed": GenerationStatus.FAILED,
        "error": GenerationStatus.FAILED,
        "cancelled": GenerationStatus.FAILED,
    }

    def build_payload(self, request: GenerationRequest) -> dict[str, Any]:
        s = request.settings
        return {
            "text_prompt": request.prompt,
            "duration": s.duration,
            "aspect_ratio": _ASPECT_RATIOS.get(s.aspect_ratio, "1920:1080"),
            "quality": _QUALITY.get(s.quality, "medium"),
            "style": s.style,
            "seed": s.seed,
            "motion_intensity": s.motion_intensity or 5,
            "camera_movement": s.camera_movement or "static",
            "frame_rate": s.frame_rate or 30,
            "image_prompts": list(request.reference_images),
        }

    def _eta(self, data: dict[str, Any], status: GenerationStatus, duration: float) -> datetime | None:
        eta = parse_timestamp(data.get("estimated_completion_time"))
        if eta is None and status in {GenerationStatus.QUEUED, GenerationStatus.PROCESSING}:
            eta = self.estimate_completion_time(max(1.0, duration * 0.5))
        return eta

    def parse_generation(
        self,
        data: dict[str, Any],
        request: GenerationRequest,
        generation_id: str,
        cost: float,
    ) -> GenerationResult:
        s = request.settings
        status = self.map_status(data.get("status"))
        output = data.get("output")
        result = None
        if output:
            result = VideoOutput(
                video_url=output.get("video_url", ""),
                thumbnail_url=output.get("thumbnail_url"),
                metadata=ResultMetadata(
                    duration=s.duration,
                    resolution=_RESOLUTIONS.get(s.aspect_ratio, "1920x1080"),
                    fps=s.frame_rate or 30,
                    file_size=output.get("file_size") or 0,
                    generation_time=data.get("generation_time") or 0,
                    cost=cost,
                ),
            )
        return GenerationResult(
            id=data.get("id") or generation_id,
            provider=self.name,
            status=status,
            progress=data.get("progress") or 0,
            result=result,
            error=self.remote_error(data),
            estimated_completion_time=self._eta(data, status, s.duration),
            created_at=datetime.now(timezone.utc),
            completed_at=parse_timestamp(data.get("completed_at")),
        )

    def status_path(self, generation_id: str) -> str:
        return f"/generate/{generation_id}"

    def parse_status(self, data: dict[str, Any], generation_id: str) -> GenerationResult:
        status = self.map_status(data.get("status"))
        output = data.get("output")
        result = None
        if output:
            result = VideoOutput(
                video_url=output.get("video_url", ""),
                thumbnail_url=output.get("thumbnail_url"),
                metadata=ResultMetadata(
                    duration=output.get("duration") or 0,
                    resolution=output.get("resolution") or "1920x1080",
                    fps=output.get("fps") or 30,
                    file_size=output.get("file_size") or 0,
                    generation_time=data.get("generation_time") or 0,
                    cost=data.get("cost") or 0,
                ),
            )
        return GenerationResult(
            id=generation_id,
            provider=self.name,
            status=status,
            progress=data.get("progress") or 0,
            result=result,
            error=self.remote_error(data),
            estimated_completion_time=parse_timestamp(data.get("estimated_completion_time")),
            created_at=parse_timestamp(data.get("created_at")) or datetime.now(timezone.utc),
            completed_at=parse_timestamp(data.get("completed_at")),
        )

    def cancel(self, generation_id: str) -> bool:
        return self._cancel_request("POST", f"/generate/{generation_id}/cancel")
