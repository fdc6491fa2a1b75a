"""Shared HTTP plumbing for provider adapters.

Concrete adapters only build a request and parse a response body; timeout
enforcement and error classification happen here so every backend reports
the same failure taxonomy.
"""

from __future__ import annotations

import asyncio
import time
from abc import abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator, Sequence

import httpx
import structlog

from wellbeing_ai.domain.enums import MessageRole
from wellbeing_ai.domain.exceptions import (
    AuthFailureError,
    InvalidResponseError,
    ProviderError,
    ProviderTimeoutError,
    ProviderUnreachableError,
    RateLimitedError,
    RequestRejectedError,
    UnknownProviderError,
)
from wellbeing_ai.domain.value_objects import (
    ChatMessage,
    GenerationOptions,
    GenerationResponse,
    ProviderDescription,
)
from wellbeing_ai.ports.outbound import LLMProviderPort
from wellbeing_ai.shared.providers.key_manager import Credential
from wellbeing_ai.shared.providers.types import ProviderConfig

logger = structlog.get_logger(__name__)

_CREDENTIAL_STATUSES = {401, 403}
_REJECTED_STATUSES = {400, 404, 409, 413, 422}
_RATE_LIMIT_STATUSES = {402, 429}

# Raised while reading a decoded body whose shape does not match the vendor schema.
_SHAPE_ERRORS = (AttributeError, KeyError, IndexError, TypeError, ValueError)


def parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


def classify_status(provider: str, response: httpx.Response) -> ProviderError:
    """Map a non-2xx response onto the uniform failure taxonomy."""
    code = response.status_code
    message = f"HTTP {code}"
    if code in _CREDENTIAL_STATUSES:
        return AuthFailureError(provider, f"{message}: credential rejected")
    if code in _REJECTED_STATUSES:
        return RequestRejectedError(provider, f"{message}: request rejected")
    if code in _RATE_LIMIT_STATUSES:
        return RateLimitedError(
            provider,
            f"{message}: rate limited",
            retry_after=parse_retry_after(response.headers.get("retry-after")),
        )
    if code == 408:
        return ProviderTimeoutError(provider, f"{message}: upstream timeout")
    if code >= 500:
        return ProviderUnreachableError(provider, f"{message}: upstream unavailable")
    return UnknownProviderError(provider, message)


class HttpProviderAdapter(LLMProviderPort):
    """Base class for adapters that talk to a backend over HTTP.

    An injected ``client`` stays owned by the caller; ``close`` only shuts
    down a client the adapter created itself.
    """

    default_model: str = ""

    def __init__(
        self,
        config: ProviderConfig,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.timeout_s)
        self._model = str(config.metadata.get("model") or self.default_model)

    @property
    def provider_id(self) -> str:
        return self._config.provider_id

    @property
    def model(self) -> str:
        return self._model

    def describe(self) -> ProviderDescription:
        return ProviderDescription(name=self._config.name, default_model=self._model)

    # ── Capability ───────────────────────────────────────────
    async def generate(
        self,
        messages: Sequence[ChatMessage],
        options: GenerationOptions,
        credential: Credential,
    ) -> GenerationResponse:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._generate(messages, options, credential),
                timeout=options.timeout_s,
            )
        except ProviderError:
            raise
        except asyncio.TimeoutError as exc:
            raise ProviderTimeoutError(
                self.provider_id, f"Timeout after {options.timeout_s:.1f}s"
            ) from exc
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError(self.provider_id, type(exc).__name__) from exc
        except httpx.TransportError as exc:
            raise ProviderUnreachableError(self.provider_id, type(exc).__name__) from exc
        except _SHAPE_ERRORS as exc:
            raise self._invalid(f"Malformed response: {type(exc).__name__}", 0) from exc
        return response.with_timing((time.monotonic() - start) * 1000)

    async def check_health(self, credential: Credential, *, timeout_s: float = 10.0) -> bool:
        try:
            return await asyncio.wait_for(self._probe(credential), timeout=timeout_s)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "provider_probe_failed",
                provider=self.provider_id,
                credential=credential.credential_id,
                error=type(exc).__name__,
            )
            return False

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ── Hooks for concrete adapters ──────────────────────────
    @abstractmethod
    async def _generate(
        self,
        messages: Sequence[ChatMessage],
        options: GenerationOptions,
        credential: Credential,
    ) -> GenerationResponse: ...

    @abstractmethod
    async def _probe(self, credential: Credential) -> bool: ...

    def _classify(self, response: httpx.Response) -> ProviderError:
        return classify_status(self.provider_id, response)

    # ── Helpers ──────────────────────────────────────────────
    async def _post_json(
        self,
        url: str,
        *,
        headers: dict[str, str],
        body: dict[str, Any],
        timeout_s: float,
    ) -> Any:
        response = await self._client.post(url, headers=headers, json=body, timeout=timeout_s)
        if response.is_error:
            raise self._classify(response)
        return self._json(response)

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise self._invalid("Response body is not JSON", len(response.content)) from exc

    @contextmanager
    def _parsing(self, payload: Any) -> Iterator[None]:
        """Report a body that does not match the vendor schema as InvalidResponse."""
        try:
            yield
        except _SHAPE_ERRORS as exc:
            raise self._invalid(
                f"Malformed response: {type(exc).__name__}", len(str(payload))
            ) from exc

    def _require_text(self, text: Any, payload: Any) -> str:
        """Reject empty/non-string content instead of passing it off as a reply."""
        if not isinstance(text, str) or not text.strip():
            raise self._invalid("Empty content in response", len(str(payload)))
        return text.strip()

    def _invalid(self, reason: str, payload_size: int) -> InvalidResponseError:
        logger.warning(
            "provider_invalid_response",
            provider=self.provider_id,
            reason=reason,
            payload_size=payload_size,
        )
        return InvalidResponseError(self.provider_id, reason, payload_size=payload_size)

    def _model_for(self, options: GenerationOptions) -> str:
        return options.model or self._model

    @staticmethod
    def _split_system(messages: Sequence[ChatMessage]) -> tuple[str, list[ChatMessage]]:
        system = "\n\n".join(m.content for m in messages if m.role is MessageRole.SYSTEM)
        rest = [m for m in messages if m.role is not MessageRole.SYSTEM]
        return system, rest
