"""OpenAI chat-completions adapter.

Also works against any OpenAI-compatible endpoint via ``metadata["base_url"]``.
"""

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

OPENAI_BASE_URL = "https://api.openai.com/v1"


class OpenAIAdapter(HttpProviderAdapter):
    default_model = "gpt-3.5-turbo"

    @property
    def _base_url(self) -> str:
        return str(self._config.metadata.get("base_url") or OPENAI_BASE_URL).rstrip("/")

    @staticmethod
    def _headers(credential: Credential) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {credential.secret}",
            "Content-Type": "application/json",
        }

    async def _generate(
        self,
        messages: Sequence[ChatMessage],
        options: GenerationOptions,
        credential: Credential,
    ) -> GenerationResponse:
        model = self._model_for(options)
        body: dict[str, Any] = {
            "model": model,
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
            "messages": [{"role": m.role.value, "content": m.content} for m in messages],
        }
        data = await self._post_json(
            f"{self._base_url}/chat/completions",
            headers=self._headers(credential),
            body=body,
            timeout_s=options.timeout_s,
        )

        with self._parsing(data):
            choice = data["choices"][0]
            usage = data.get("usage") or {}
            return GenerationResponse(
                provider=self.provider_id,
                model=str(data.get("model") or model),
                content=self._require_text(choice["message"].get("content"), data),
                usage=TokenUsage(
                    prompt_tokens=int(usage.get("prompt_tokens", 0)),
                    completion_tokens=int(usage.get("completion_tokens", 0)),
                ),
                finish_reason=choice.get("finish_reason"),
                credential_id=credential.credential_id,
            )

    async def _probe(self, credential: Credential) -> bool:
        response = await self._client.get(
            f"{self._base_url}/models", headers=self._headers(credential)
        )
        if response.is_error:
            raise self._classify(response)
        return True
