"""Ollama adapter for a local model server.

Ollama takes no API key; the key manager hands out a single pseudo-credential
so cooldown bookkeeping works the same as for hosted backends.
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

OLLAMA_BASE_URL = "http://localhost:11434"


class OllamaAdapter(HttpProviderAdapter):
    default_model = "llama3"

    @property
    def _base_url(self) -> str:
        return str(self._config.metadata.get("base_url") or OLLAMA_BASE_URL).rstrip("/")

    async def _generate(
        self,
        messages: Sequence[ChatMessage],
        options: GenerationOptions,
        credential: Credential,
    ) -> GenerationResponse:
        model = self._model_for(options)
        body: dict[str, Any] = {
            "model": model,
            "stream": False,
            "messages": [{"role": m.role.value, "content": m.content} for m in messages],
            "options": {
                "temperature": options.temperature,
                "num_predict": options.max_tokens,
            },
        }
        data = await self._post_json(
            f"{self._base_url}/api/chat",
            headers={"Content-Type": "application/json"},
            body=body,
            timeout_s=options.timeout_s,
        )

        with self._parsing(data):
            return GenerationResponse(
                provider=self.provider_id,
                model=str(data.get("model") or model),
                content=self._require_text(data["message"].get("content"), data),
                usage=TokenUsage(
                    prompt_tokens=int(data.get("prompt_eval_count", 0)),
                    completion_tokens=int(data.get("eval_count", 0)),
                ),
                finish_reason=data.get("done_reason"),
                credential_id=credential.credential_id,
            )

    async def _probe(self, credential: Credential) -> bool:
        response = await self._client.get(f"{self._base_url}/api/tags")
        if response.is_error:
            raise self._classify(response)
        data = self._json(response)
        with self._parsing(data):
            names = {str(m.get("name", "")) for m in data.get("models", [])}
        # Tags come back as "llama3:latest"; accept a bare name too.
        return any(n == self._model or n.split(":")[0] == self._model for n in names)
