from __future__ import annotations

import time
from abc import abstractmethod
from collections.abc import Callable
from datetime import datetime
from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from reelhive.core.providers.base import (
    GenerationError,
    GenerationRequest,
    GenerationResult,
    GenerationStatus,
    ProviderAdapter,
)
from reelhive.core.providers.rate_limit import RateLimits
from reelhive.core.runtime.errors import classify_http_error


def parse_timestamp(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class HttpProviderAdapter(ProviderAdapter):
    """JSON-over-HTTP provider with bearer auth.

    Concrete providers describe their endpoints and translate payloads; this
    class owns the transport, the retry on transient network errors and the
    rule that remote failures come back as ``failed`` results instead of
    exceptions.
    """

    default_base_url: str
    generate_path: str
    status_map: dict[str, GenerationStatus] = {}

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = None,
        timeout_seconds: float = 30.0,
        transport: httpx.BaseTransport | None = None,
        rate_limits: RateLimits | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(api_key, rate_limits=rate_limits, clock=clock)
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout_seconds, transport=self._transport)

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_fixed(0.2),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    def _request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        with self._client() as client:
            resp = client.request(method, f"{self.base_url}{path}", json=payload, headers=self._headers())
            resp.raise_for_status()
            if not resp.content:
                return {}
            body = resp.json()
        return body if isinstance(body, dict) else {}

    def map_status(self, status: Any) -> GenerationStatus:
        if not isinstance(status, str):
            return GenerationStatus.QUEUED
        return self.status_map.get(status.lower(), GenerationStatus.QUEUED)

    def remote_error(self, data: dict[str, Any]) -> GenerationError | None:
        error = data.get("error")
        if not error:
            return None
        if not isinstance(error, dict):
            error = {"message": str(error)}
        return GenerationError(
            message=error.get("message") or f"{self.name} generation failed",
            code=error.get("code") or f"{self.name.upper()}_ERROR",
            retryable=error.get("retryable") is not False,
        )

    @abstractmethod
    def build_payload(self, request: GenerationRequest) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def parse_generation(
        self,
        data: dict[str, Any],
        request: GenerationRequest,
        generation_id: str,
        cost: float,
    ) -> GenerationResult:
        raise NotImplementedError

    @abstractmethod
    def status_path(self, generation_id: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def parse_status(self, data: dict[str, Any], generation_id: str) -> GenerationResult:
        raise NotImplementedError

    def generate(self, request: GenerationRequest) -> GenerationResult:
        self.validate_request(request)

        generation_id = self.generate_request_id()
        cost = self.calculate_cost(request.settings.duration, request.settings.quality)
        payload = {k: v for k, v in self.build_payload(request).items() if v is not None}

        try:
            data = self._request("POST", self.generate_path, payload)
            result = self.parse_generation(data, request, generation_id, cost)
        except Exception as exc:  # noqa: BLE001
            err = classify_http_error(exc, provider=self.name)
            self.logger.warning(
                "provider_generate_failed",
                provider=self.name,
                generation_id=generation_id,
                retryable=err.retryable,
                error=str(err),
            )
            return self.failed_result(generation_id, err)

        if request.user_id:
            self.rate_limiter.add_cost(request.user_id, cost)
        return result

    def get_status(self, generation_id: str) -> GenerationResult:
        try:
            data = self._request("GET", self.status_path(generation_id))
            return self.parse_status(data, generation_id)
        except Exception as exc:  # noqa: BLE001
            err = classify_http_error(exc, provider=self.name)
            self.logger.warning("provider_status_failed", provider=self.name, generation_id=generation_id, error=str(err))
            return self.failed_result(generation_id, err)

    def _cancel_request(self, method: str, path: str) -> bool:
        try:
            with self._client() as client:
                resp = client.request(method, f"{self.base_url}{path}", headers=self._headers())
                return resp.is_success
        except httpx.HTTPError as exc:
            self.logger.error("provider_cancel_failed", provider=self.name, path=path, error=str(exc))
            return False
