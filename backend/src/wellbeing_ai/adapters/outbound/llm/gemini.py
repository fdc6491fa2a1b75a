"""Google Gemini adapter (Generative Language REST API)."""

from __future__ import annotations

from typing import Any, Sequence

import httpx

from wellbeing_ai.domain.enums import MessageRole
from wellbeing_ai.domain.exceptions import (
    AuthFailureError,
    ProviderError,
)
from wellbeing_ai.domain.value_objects import (
    ChatMessage,
    GenerationOptions,
    GenerationResponse,
    TokenUsage,
)
from wellbeing_ai.adapters.outbound.llm.base import HttpProviderAdapter
from wellbeing_ai.shared.providers.key_manager import Credential

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

# Gemini answers a bad key with 400 INVALID_ARGUMENT rather than 401.
_INVALID_KEY_REASON = "API_KEY_INVALID"


class GeminiAdapter(HttpProviderAdapter):
    default_model = "gemini-1.5-flash"

    @property
    def _base_url(self) -> str:
        return str(self._config.metadata.get("base_url") or GEMINI_BASE_URL).rstrip("/")

    @staticmethod
    def _headers(credential: Credential) -> dict[str, str]:
        # Header auth keeps the key out of URLs and access logs.
        return {"x-goog-api-key": credential.secret, "Content-Type": "application/json"}

    def _classify(self, response: httpx.Response) -> ProviderError:
        if response.status_code == 400 and _INVALID_KEY_REASON in response.text:
            return AuthFailureError(self.provider_id, "HTTP 400: API key not valid")
        return super()._classify(response)

    async def _generate(
        self,
        messages: Sequence[ChatMessage],
        options: GenerationOptions,
        credential: Credential,
    ) -> GenerationResponse:
        model = self._model_for(options)
        system, turns = self._split_system(messages)
        body: dict[str, Any] = {
            "contents": [
                {
                    "role": "model" if m.role is MessageRole.ASSISTANT else "user",
                    "parts": [{"text": m.content}],
                }
                for m in turns
            ],
            "generationConfig": {
                "temperature": options.temperature,
                "maxOutputTokens": options.max_tokens,
            },
        }
        if system:
            body["system_instruction"] = {"parts": [{"text": system}]}

        data = await self._post_json(
            f"{self._base_url}/models/{model}:generateContent",
            headers=self._headers(credential),
            body=body,
            timeout_s=options.timeout_s,
        )

        with self._parsing(data):
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            if block_reason:
                raise self._invalid(f"Prompt blocked: {block_reason}", len(str(data)))

            candidate = data["candidates"][0]
            parts = candidate.get("content", {}).get("parts", [])
            text = "".join(p.get("text", "") for p in parts)

            meta = data.get("usageMetadata") or {}
            return GenerationResponse(
                provider=self.provider_id,
                model=model,
                content=self._require_text(text, data),
                usage=TokenUsage(
                    prompt_tokens=int(meta.get("promptTokenCount", 0)),
                    completion_tokens=int(meta.get("candidatesTokenCount", 0)),
                ),
                finish_reason=candidate.get("finishReason"),
                credential_id=credential.credential_id,
            )

    async def _probe(self, credential: Credential) -> bool:
        response = await self._client.get(
            f"{self._base_url}/models/{self._model}",
            headers=self._headers(credential),
        )
        if response.is_error:
            raise self._classify(response)
        return True
