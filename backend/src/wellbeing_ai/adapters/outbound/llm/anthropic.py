"""Anthropic Messages API adapter."""

from __future__ import annotations

from typing import Any, Sequence

from wellbeing_ai.domain.value_objects import (
    ChatMessage,
    GenerationOptions,
    GenerationResponse,
    TokenUsage,
)
from wellbeing_ai.adapters.outbound.llm.base import HttpProviderAdapter
from wellbeing_ai.shared.providers.key_manager import Credential

ANTHROPIC_BASE_URL = "https://api.anthropic.com/v1"
ANTHROPIC_VERSION = "2023-06-01"


class AnthropicAdapter(HttpProviderAdapter):
    default_model = "claude-3-haiku-20240307"

    @property
    def _base_url(self) -> str:
        return str(self._config.metadata.get("base_url") or ANTHROPIC_BASE_URL).rstrip("/")

    def _headers(self, credential: Credential) -> dict[str, str]:
        return {
            "x-api-key": credential.secret,
            "anthropic-version": str(
                self._config.metadata.get("api_version") or ANTHROPIC_VERSION
            ),
            "content-type": "application/json",
        }

    async def _generate(
        self,
        messages: Sequence[ChatMessage],
        options: GenerationOptions,
        credential: Credential,
    ) -> GenerationResponse:
        model = self._model_for(options)
        system, turns = self._split_system(messages)
        body: dict[str, Any] = {
            "model": model,
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
            "messages": [{"role": m.role.value, "content": m.content} for m in turns],
        }
        if system:
            body["system"] = system

        data = await self._post_json(
            f"{self._base_url}/messages",
            headers=self._headers(credential),
            body=body,
            timeout_s=options.timeout_s,
        )

        with self._parsing(data):
            text = "".join(
                block.get("text", "")
                for block in data["content"]
                if block.get("type", "text") == "text"
            )
            usage = data.get("usage") or {}
            return GenerationResponse(
                provider=self.provider_id,
                model=str(data.get("model") or model),
                content=self._require_text(text, data),
                usage=TokenUsage(
                    prompt_tokens=int(usage.get("input_tokens", 0)),
                    completion_tokens=int(usage.get("output_tokens", 0)),
                ),
                finish_reason=data.get("stop_reason"),
                credential_id=credential.credential_id,
            )

    async def _probe(self, credential: Credential) -> bool:
        response = await self._client.get(
            f"{self._base_url}/models", headers=self._headers(credential)
        )
        if response.is_error:
            raise self._classify(response)
        return True
