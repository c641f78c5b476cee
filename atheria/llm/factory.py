from __future__ import annotations
from typing import Optional

from atheria.config import Settings
from atheria.log import logger
from .local import LocalLLM
from .base import LLMProvider


def get_provider(settings: Settings, backend: Optional[str] = None) -> LLMProvider:
    name = (backend or settings.llm_backend or "local").lower()

    # Honor remote_allowed: if false, force local
    if not settings.remote_allowed:
        name = "local"

    if name == "openai":
        from .openai import OpenAILLM
        return OpenAILLM(model=settings.openai_model, min_chars=settings.analysis_min_chars)
    if name != "local":
        logger.warning(f"[llm] unknown backend {name!r}; using local")
    return LocalLLM(min_chars=settings.analysis_min_chars)
