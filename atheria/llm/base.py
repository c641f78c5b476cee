from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict
import re

from atheria.errors import AnalysisError, ContinuationError
from atheria.log import logger
from atheria.note import AnalysisResult, LEGACY_MOOD_COLOR

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")
MAX_TAGS = 5


def normalize_analysis(data: Dict[str, Any]) -> AnalysisResult:
    """Coerce a provider's raw analysis payload into a valid AnalysisResult."""
    try:
        mood = str(data["mood"]).strip()
        score = float(data["moodScore"])
    except (KeyError, TypeError, ValueError) as e:
        raise AnalysisError(f"analysis payload missing mood/moodScore: {data!r}") from e
    if not mood:
        raise AnalysisError("analysis returned an empty mood")

    color = str(data.get("moodColor") or "").strip()
    if not _HEX_COLOR.match(color):
        color = LEGACY_MOOD_COLOR

    tags: list[str] = []
    for t in data.get("tags") or []:
        if not isinstance(t, str):
            continue
        t = t.strip().lstrip("#")
        if t and t not in tags:
            tags.append(t)

    return AnalysisResult(
        mood=mood,
        mood_score=max(0.0, min(10.0, score)),
        mood_color=color,
        tags=tuple(tags[:MAX_TAGS]),
        summary=str(data.get("summary") or "").strip(),
        reflection_question=str(data.get("reflectionQuestion") or "").strip(),
    )


class LLMProvider(ABC):
    """Abstract mood-analysis / co-writing provider."""

    def __init__(self, *, min_chars: int = 10):
        self.min_chars = min_chars

    def analyze(self, text: str) -> AnalysisResult:
        if not text or len(text) < self.min_chars:
            raise AnalysisError("Entry too short to analyze")
        return self._analyze(text)

    def continue_text(self, text: str) -> str:
        """Next 2-3 sentences in the writer's voice; empty string on failure."""
        try:
            return self._continue(text).strip()
        except ContinuationError as e:
            logger.warning(f"[llm] continuation failed: {e}")
            return ""

    @abstractmethod
    def _analyze(self, text: str) -> AnalysisResult:
        raise NotImplementedError

    @abstractmethod
    def _continue(self, text: str) -> str:
        raise NotImplementedError
