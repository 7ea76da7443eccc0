from __future__ import annotations

import re
import secrets
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

from reelhive.core.providers.rate_limit import Quota, RateLimiter, RateLimits
from reelhive.core.runtime.errors import InvalidCredential, InvalidRequest, ProviderError
from reelhive.core.telemetry.logging import get_logger

MAX_PROMPT_LENGTH = 2000

ASPECT_RATIOS = frozenset({"16:9", "9:16", "4:3", "1:1"})

QUALITY_MULTIPLIERS: dict[str, float] = {
    "draft": 0.5,
    "standard": 1.0,
    "high": 1.5,
    "premium": 2.0,
}

_UNSAFE_PROMPT = re.compile(r"[<>\"'&]|javascript:|data:|vbscript:", re.IGNORECASE)


class GenerationStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class VideoSettings:
    duration: float
    aspect_ratio: str = "16:9"
    quality: str = "standard"
    style: str | None = None
    seed: int | None = None
    motion_intensity: float | None = None
    camera_movement: str | None = None
    frame_rate: int | None = None


@dataclass(frozen=True, slots=True)
class RequestMetadata:
    user_id: str
    project_id: str | None = None
    priority: str | None = None


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    prompt: str
    settings: VideoSettings
    reference_images: tuple[str, ...] = ()
    metadata: RequestMetadata | None = None

    @property
    def user_id(self) -> str | None:
        return self.metadata.user_id if self.metadata else None


@dataclass(frozen=True, slots=True)
class ResultMetadata:
    duration: float
    resolution: str
    fps: int
    file_size: int = 0
    format: str = "mp4"
    generation_time: float = 0.0
    cost: float = 0.0


@dataclass(frozen=True, slots=True)
class VideoOutput:
    video_url: str
    thumbnail_url: str | None
    metadata: ResultMetadata


@dataclass(frozen=True, slots=True)
class GenerationError:
    message: str
    code: str
    retryable: bool


@dataclass(frozen=True, slots=True)
class GenerationResult:
    id: str
    provider: str
    status: GenerationStatus
    progress: int = 0
    result: VideoOutput | None = None
    error: GenerationError | None = None
    estimated_completion_time: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.status != GenerationStatus.FAILED


@dataclass(frozen=True, slots=True)
class ProviderCapabilities:
    max_duration_seconds: float
    supported_aspect_ratios: frozenset[str]
    cost_per_second: float


class ProviderAdapter(ABC):
    """Contract every video provider implements.

    Subclasses declare their static capability table as class attributes and
    hold only a credential plus the per-user rate limiter.
    """

    name: str
    max_duration_seconds: float = 0
    supported_aspect_ratios: frozenset[str] = frozenset()
    cost_per_second: float = 0.0
    credential_pattern: re.Pattern[str] | None = None

    def __init__(
        self,
        api_key: str,
        *,
        rate_limits: RateLimits | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.logger = get_logger(f"reelhive.providers.{self.name}")
        self._validate_api_key(api_key)
        self.api_key = api_key
        self.rate_limiter = RateLimiter(self.name, rate_limits, clock=clock)

    @abstractmethod
    def generate(self, request: GenerationRequest) -> GenerationResult:
        raise NotImplementedError

    @abstractmethod
    def get_status(self, generation_id: str) -> GenerationResult:
        raise NotImplementedError

    @abstractmethod
    def cancel(self, generation_id: str) -> bool:
        raise NotImplementedError

    def is_available(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    def get_max_duration(self) -> float:
        return self.max_duration_seconds

    def get_supported_aspect_ratios(self) -> frozenset[str]:
        return self.supported_aspect_ratios

    def get_cost_per_second(self) -> float:
        return self.cost_per_second

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            max_duration_seconds=self.get_max_duration(),
            supported_aspect_ratios=frozenset(self.get_supported_aspect_ratios()),
            cost_per_second=self.get_cost_per_second(),
        )

    def check_rate_limit(self, user_id: str) -> bool:
        return self.rate_limiter.check_rate_limit(user_id)

    def get_remaining_quota(self, user_id: str) -> Quota:
        return self.rate_limiter.get_remaining_quota(user_id)

    def calculate_cost(self, duration: float, quality: str) -> float:
        return self.get_cost_per_second() * duration * QUALITY_MULTIPLIERS.get(quality, 1.0)

    def generate_request_id(self) -> str:
        return f"{self.name}_{int(time.time() * 1000)}_{secrets.token_hex(5)}"

    def validate_request(self, request: GenerationRequest) -> None:
        prompt = request.prompt or ""
        if not prompt.strip():
            raise InvalidRequest("Video prompt is required")
        if len(prompt) > MAX_PROMPT_LENGTH:
            raise InvalidRequest(f"Video prompt must be at most {MAX_PROMPT_LENGTH} characters")
        if _UNSAFE_PROMPT.search(prompt):
            raise InvalidRequest("Prompt contains potentially unsafe content")

        max_duration = self.get_max_duration()
        duration = request.settings.duration
        if duration < 1 or duration > max_duration:
            raise InvalidRequest(f"Duration must be between 1 and {max_duration} seconds")

        if request.settings.aspect_ratio not in self.get_supported_aspect_ratios():
            raise InvalidRequest(f"Aspect ratio {request.settings.aspect_ratio} not supported by {self.name}")

        if not request.user_id:
            raise InvalidRequest("User ID is required in metadata")

    def failed_result(self, generation_id: str, exc: ProviderError) -> GenerationResult:
        return GenerationResult(
            id=generation_id,
            provider=self.name,
            status=GenerationStatus.FAILED,
            progress=0,
            error=GenerationError(
                message=str(exc),
                code=f"{self.name.upper()}_API_ERROR",
                retryable=exc.retryable,
            ),
        )

    @staticmethod
    def estimate_completion_time(minutes: float) -> datetime:
        return datetime.now(timezone.utc) + timedelta(minutes=minutes)

    def _validate_api_key(self, api_key: str) -> None:
        if not isinstance(api_key, str) or not api_key.strip():
            raise InvalidCredential(f"Invalid {self.name} API key provided: empty or invalid format")
        if self.credential_pattern is not None and not self.credential_pattern.match(api_key):
            self.logger.warning(
                "provider_credential_format_unrecognized",
                provider=self.name,
                detail="using anyway, this may cause authentication errors",
            )
