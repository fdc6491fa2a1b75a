"""Application services."""

from wellbeing_ai.application.services.llm_service import LLMService

__all__ = ["LLMService"]
