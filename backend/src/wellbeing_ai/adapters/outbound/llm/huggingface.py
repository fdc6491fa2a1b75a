"""Hugging Face Inference API adapter (text-generation task)."""

from __future__ import annotations

from typing import Any, Sequence

from wellbeing_ai.domain.enums import MessageRole
from wellbeing_ai.domain.value_objects import (
    ChatMessage,
    GenerationOptions,
    GenerationResponse,
)
from wellbeing_ai.adapters.outbound.llm.base import HttpProviderAdapter
from wellbeing_ai.shared.providers.key_manager import Credential

HUGGINGFACE_BASE_URL = "https://api-inference.huggingface.co/models"

_ROLE_PREFIX = {
    MessageRole.SYSTEM: "System",
    MessageRole.USER: "User",
    MessageRole.ASSISTANT: "Assistant",
}


def render_prompt(messages: Sequence[ChatMessage]) -> str:
    """Flatten a conversation into a plain prompt for text-generation models."""
    lines = [f"{_ROLE_PREFIX[m.role]}: {m.content}" for m in messages]
    lines.append("Assistant:")
    return "\n".join(lines)


class HuggingFaceAdapter(HttpProviderAdapter):
    default_model = "mistralai/Mistral-7B-Instruct-v0.2"

    @property
    def _base_url(self) -> str:
        return str(self._config.metadata.get("base_url") or HUGGINGFACE_BASE_URL).rstrip("/")

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
            "inputs": render_prompt(messages),
            "parameters": {
                "max_new_tokens": options.max_tokens,
                "temperature": options.temperature,
                "return_full_text": False,
            },
        }
        data = await self._post_json(
            f"{self._base_url}/{model}",
            headers=self._headers(credential),
            body=body,
            timeout_s=options.timeout_s,
        )

        with self._parsing(data):
            first = data[0] if isinstance(data, list) else data
            return GenerationResponse(
                provider=self.provider_id,
                model=model,
                content=self._require_text(first.get("generated_text"), data),
                credential_id=credential.credential_id,
            )

    async def _probe(self, credential: Credential) -> bool:
        response = await self._client.get(
            f"{self._base_url}/{self._model}", headers=self._headers(credential)
        )
        # 503 means the model is still loading; key and endpoint are fine.
        if response.status_code == 503:
            return True
        if response.is_error:
            raise self._classify(response)
        return True
