from __future__ import annotations
from typing import List
import re

from vaderSentiment.vaderSentiment import SentimentIntensityAnalyzer

from atheria.errors import ContinuationError
from atheria.note import AnalysisResult
from .base import LLMProvider, MAX_TAGS

# (lowest score, mood, pastel color), checked top-down
_MOOD_SCALE = [
    (8.0, "joyful", "#fde68a"),
    (6.5, "content", "#bbf7d0"),
    (4.5, "reflective", "#c7d2fe"),
    (3.0, "melancholy", "#bfdbfe"),
    (0.0, "troubled", "#fecaca"),
]

_QUESTIONS = {
    "joyful": "What made today feel this bright, and how could you invite more of it?",
    "content": "What small thing is quietly holding your days together right now?",
    "reflective": "What are you still turning over in your mind, and what would settle it?",
    "melancholy": "What would you tell a friend who wrote these words?",
    "troubled": "What is one thing within your control that could ease this a little?",
}

_STOPWORDS = {
    "that", "this", "with", "have", "from", "they", "were", "what", "when", "will",
    "just", "been", "about", "there", "their", "would", "could", "should", "into",
    "then", "than", "them", "some", "very", "really", "because", "which", "while",
}


class LocalLLM(LLMProvider):
    """Offline provider: VADER sentiment for mood, keyword frequency for tags."""

    def __init__(self, *, min_chars: int = 10):
        super().__init__(min_chars=min_chars)
        self._vader = SentimentIntensityAnalyzer()

    def _analyze(self, text: str) -> AnalysisResult:
        compound = float(self._vader.polarity_scores(text).get("compound", 0.0))
        score = round((compound + 1.0) * 5.0, 1)
        mood, color = next((m, c) for (low, m, c) in _MOOD_SCALE if score >= low)
        return AnalysisResult(
            mood=mood,
            mood_score=score,
            mood_color=color,
            tags=tuple(self._tags(text)),
            summary=self._summary(text),
            reflection_question=_QUESTIONS[mood],
        )

    def _continue(self, text: str) -> str:
        raise ContinuationError("the local provider does not generate text")

    @staticmethod
    def _summary(text: str) -> str:
        # First sentence; split on . ! ? followed by whitespace/newline
        sents = [s.strip() for s in re.split(r"(?<=[.!?])\s+", text.strip()) if s.strip()]
        return sents[0] if sents else ""

    @staticmethod
    def _tags(text: str) -> List[str]:
        words = [w for w in re.findall(r"[a-z0-9]{4,}", text.lower()) if w not in _STOPWORDS]
        freq: dict[str, int] = {}
        for w in words:
            freq[w] = freq.get(w, 0) + 1
        return sorted(freq.keys(), key=lambda w: (-freq[w], w))[:MAX_TAGS]
