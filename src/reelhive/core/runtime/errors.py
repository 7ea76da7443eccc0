from __future__ import annotations

import re

import httpx


class ReelhiveError(Exception):
    code = "REELHIVE_ERROR"


class InvalidRequest(ReelhiveError):
    code = "INVALID_REQUEST"


class InvalidCredential(ReelhiveError):
    code = "INVALID_CREDENTIAL"


class ProviderNotFound(ReelhiveError):
    code = "PROVIDER_NOT_FOUND"

    def __init__(self, provider: str) -> None:
        super().__init__(f"{provider} service not found")
        self.provider = provider


class ServiceUnavailable(ReelhiveError):
    code = "SERVICE_UNAVAILABLE"

    def __init__(self, provider: str, message: str | None = None) -> None:
        super().__init__(message or f"{provider} service is not available")
        self.provider = provider


class RateLimited(ReelhiveError):
    code = "RATE_LIMITED"

    def __init__(self, provider: str, user_id: str) -> None:
        super().__init__(f"{provider} rate limit reached for user {user_id}")
        self.provider = provider
        self.user_id = user_id


class ProviderError(ReelhiveError):
    code = "PROVIDER_ERROR"

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        retryable: bool = True,
        http_status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.retryable = retryable
        self.http_status = http_status


class AllProvidersExhausted(ReelhiveError):
    code = "ALL_PROVIDERS_EXHAUSTED"

    def __init__(self, failures: list[ReelhiveError]) -> None:
        detail = " | ".join(f"{getattr(f, 'provider', '?')}:{f.code}" for f in failures) or "no candidates"
        super().__init__(f"All video generation services are unavailable or rate limited ({detail})")
        self.failures = list(failures)


def _compact_message(message: str, max_len: int = 220) -> str:
    msg = re.sub(r"\s+", " ", message)
    return msg.strip()[:max_len]


def is_retryable_status(status: int) -> bool:
    if status in {408, 429}:
        return True
    return status >= 500


def classify_http_error(exc: Exception, *, provider: str) -> ProviderError:
    if isinstance(exc, ProviderError):
        return exc
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return ProviderError(
            provider,
            _compact_message(f"{provider} API error: {status} {exc.response.reason_phrase}"),
            retryable=is_retryable_status(status),
            http_status=status,
        )
    if isinstance(exc, httpx.TimeoutException):
        return ProviderError(provider, f"{provider} API timeout: {exc}", retryable=True)
    if isinstance(exc, httpx.TransportError):
        return ProviderError(provider, _compact_message(f"{provider} API unreachable: {exc}"), retryable=True)
    return ProviderError(provider, _compact_message(f"{exc.__class__.__name__}: {exc}"), retryable=True)


def compact_error_summary(exc: Exception, max_len: int = 220) -> str:
    return f"{exc.__class__.__name__}: {_compact_message(str(exc), max_len=max_len)}"
