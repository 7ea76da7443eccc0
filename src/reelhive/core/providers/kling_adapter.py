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
from reelhive.core.providers.http_adapter import HttpProviderAdapter

_RESOLUTIONS = {
    "16:9": "1280x720",
    "9:16": "720x1280",
    "1:1": "720x720",
}

_MODELS = {
    "draft": "kling-v1",
    "standard": "kling-v1",
    "high": "kling-v1-5",
    "premium": "kling-v1-5",
}

_PROGRESS = {
    "submitted": 10,
    "processing": 50,
    "succeed": 100,
    "failed": 0,
    "rejected": 0,
}


def motion_bucket(intensity: float | None) -> int:
    if intensity is None:
        return 127
    return round(intensity * 255 / 10)


class KlingAdapter(HttpProviderAdapter):
    name = "kling"
    default_base_url = "https://api.klingai.com/v1"
    generate_path = "/videos/text2video"
    max_duration_seconds = 10
    supported_aspect_ratios = frozenset({"16:9", "9:16", "1:1"})
    cost_per_second = 0.06
    credential_pattern = re.compile(r"^kl_[a-zA-Z0-9_-]{24,}$")
    status_map = {
        "submitted": GenerationStatus.QUEUED,
        "processing": GenerationStatus.PROCESSING,
        "succeed": GenerationStatus.COMPLETED,
        "failed": GenerationStatus.FAILED,
        "rejected": GenerationStatus.FAILED,
    }

    def build_payload(self, request: GenerationRequest) -> dict[str, Any]:
        s = request.settings
        return {
            "model": _MODELS.get(s.quality, "kling-v1"),
            "prompt": request.prompt,
            "duration": s.duration,
            "aspect_ratio": s.aspect_ratio,
            "cfg_scale": 7.5,
            "seed": s.seed,
            "motion_bucket_id": motion_bucket(s.motion_intensity),
            "fps": s.frame_rate or 25,
            "image_url": request.reference_images[0] if request.reference_images else None,
            "style": s.style,
        }

    @staticmethod
    def _progress(status: Any) -> int:
        return _PROGRESS.get(status.lower(), 0) if isinstance(status, str) else 0

    @staticmethod
    def _is_done(status: Any) -> bool:
        return isinstance(status, str) and status.lower() == "succeed"

    def eta_for(self, duration: float) -> datetime:
        return self.estimate_completion_time(max(2.0, duration * 0.5))

    def _output(self, data: dict[str, Any], metadata: ResultMetadata) -> VideoOutput | None:
        task_result = data.get("task_result")
        if not task_result:
            return None
        first = task_result[0] if isinstance(task_result, list) else task_result
        return VideoOutput(video_url=first.get("url", ""), thumbnail_url=first.get("cover_image_url"), metadata=metadata)

    def parse_generation(
        self,
        data: dict[str, Any],
        request: GenerationRequest,
        generation_id: str,
        cost: float,
    ) -> GenerationResult:
        s = request.settings
        task_status = data.get("task_status")
        metadata = ResultMetadata(
            duration=s.duration,
            resolution=_RESOLUTIONS.get(s.aspect_ratio, "1280x720"),
            fps=s.frame_rate or 25,
            cost=cost,
        )
        now = datetime.now(timezone.utc)
        return GenerationResult(
            id=data.get("task_id") or generation_id,
            provider=self.name,
            status=self.map_status(task_status),
            progress=self._progress(task_status),
            result=self._output(data, metadata),
            error=self.remote_error(data),
            estimated_completion_time=self.eta_for(s.duration),
            created_at=now,
            completed_at=now if self._is_done(task_status) else None,
        )

    def status_path(self, generation_id: str) -> str:
        return f"/videos/text2video/{generation_id}"

    def parse_status(self, data: dict[str, Any], generation_id: str) -> GenerationResult:
        task_status = data.get("task_status")
        task_result = data.get("task_result") or [{}]
        first = task_result[0] if isinstance(task_result, list) and task_result else {}
        metadata = ResultMetadata(duration=first.get("duration") or 0, resolution="1280x720", fps=25)
        now = datetime.now(timezone.utc)
        processing = isinstance(task_status, str) and task_status.lower() == "processing"
        return GenerationResult(
            id=generation_id,
            provider=self.name,
            status=self.map_status(task_status),
            progress=self._progress(task_status),
            result=self._output(data, metadata),
            error=self.remote_error(data),
            estimated_completion_time=self.eta_for(5) if processing else None,
            created_at=now,
            completed_at=now if self._is_done(task_status) else None,
        )

    def cancel(self, generation_id: str) -> bool:
        # text2video tasks cannot be cancelled once submitted
        return False
