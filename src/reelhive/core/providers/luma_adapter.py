from __future__ import annotations

import re
from dataclasses import replace
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
    "16:9": "1360x768",
    "9:16": "768x1360",
    "4:3": "1024x768",
    "1:1": "768x768",
}

_PROGRESS = {
    "queued": 10,
    "dreaming": 60,
    "completed": 100,
    "failed": 0,
}

# Dream Machine clips are fixed length
CLIP_SECONDS = 5


class LumaAdapter(HttpProviderAdapter):
    name = "luma"
    default_base_url = "https://api.lumalabs.ai/dream-machine/v1"
    generate_path = "/generations"
    max_duration_seconds = CLIP_SECONDS
    supported_aspect_ratios = frozenset({"16:9", "9:16", "4:3", "1:1"})
    cost_per_second = 0.14
    credential_pattern = re.compile(r"^luma_[a-zA-Z0-9_-]{28,}$")
    status_map = {
        "queued": GenerationStatus.QUEUED,
        "dreaming": GenerationStatus.PROCESSING,
        "completed": GenerationStatus.COMPLETED,
        "failed": GenerationStatus.FAILED,
    }

    def build_payload(self, request: GenerationRequest) -> dict[str, Any]:
        keyframes = None
        if request.reference_images:
            keyframes = {"frame0": {"type": "image", "url": request.reference_images[0]}}
        return {
            "prompt": request.prompt,
            "aspect_ratio": request.settings.aspect_ratio,
            "loop": False,
            "keyframes": keyframes,
        }

    def remote_error(self, data: dict[str, Any]) -> GenerationError | None:
        reason = data.get("failure_reason")
        if not reason:
            return None
        message = str(reason)
        return GenerationError(message=message, code="LUMA_ERROR", retryable="policy" not in message.lower())

    @staticmethod
    def _progress(state: Any) -> int:
        return _PROGRESS.get(state.lower(), 0) if isinstance(state, str) else 0

    def _assets(self, data: dict[str, Any], resolution: str, cost: float) -> VideoOutput | None:
        assets = data.get("assets")
        if not assets:
            return None
        return VideoOutput(
            video_url=assets.get("video", ""),
            thumbnail_url=assets.get("thumbnail"),
            metadata=ResultMetadata(duration=CLIP_SECONDS, resolution=resolution, fps=30, cost=cost),
        )

    def _result(self, data: dict[str, Any], generation_id: str, resolution: str, cost: float) -> GenerationResult:
        state = data.get("state")
        status = self.map_status(state)
        now = datetime.now(timezone.utc)
        return GenerationResult(
            id=generation_id,
            provider=self.name,
            status=status,
            progress=self._progress(state),
            result=self._assets(data, resolution, cost),
            error=self.remote_error(data),
            estimated_completion_time=self.estimate_completion_time(2),
            created_at=parse_timestamp(data.get("created_at")) or now,
            completed_at=now if status == GenerationStatus.COMPLETED else None,
        )

    def parse_generation(
        self,
        data: dict[str, Any],
        request: GenerationRequest,
        generation_id: str,
        cost: float,
    ) -> GenerationResult:
        resolution = _RESOLUTIONS.get(request.settings.aspect_ratio, "1360x768")
        return self._result(data, data.get("id") or generation_id, resolution, cost)

    def status_path(self, generation_id: str) -> str:
        return f"/generations/{generation_id}"

    def parse_status(self, data: dict[str, Any], generation_id: str) -> GenerationResult:
        result = self._result(data, generation_id, "1360x768", 0)
        if result.status != GenerationStatus.PROCESSING:
            return replace(result, estimated_completion_time=None)
        return result

    def cancel(self, generation_id: str) -> bool:
        return self._cancel_request("DELETE", f"/generations/{generation_id}")
