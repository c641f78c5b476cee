from __future__ import annotations
import os
import json

from atheria.errors import AnalysisError, ContinuationError
from atheria.note import AnalysisResult
from .base import LLMProvider, normalize_analysis

_ANALYZE_SYSTEM = (
    "You analyze personal journal entries. Respond with ONLY a JSON object with keys: "
    "mood (a single emotive word), moodScore (number 0 = very negative to 10 = very positive), "
    "moodColor (a soft pastel hex color such as #FFB6C1 that represents the mood), "
    "tags (3-5 short keywords), summary (one concise sentence), "
    "reflectionQuestion (one thoughtful question for self-reflection based on the entry)."
)

_CONTINUE_SYSTEM = (
    "You are a helpful co-author. Write the next 2-3 sentences continuing the writer's train of thought. "
    "Match their tone, style and perspective (first person). Do not repeat the last sentence. "
    "Return only the new sentences."
)


class OpenAILLM(LLMProvider):
    """OpenAI provider using chat.completions API.

    Requires OPENAI_API_KEY to be set in the environment.
    Model can be overridden via ATHERIA_OPENAI_MODEL; defaults to 'gpt-4o-mini'.
    """

    def __init__(self, model: str | None = None, timeout: float = 20.0, *, min_chars: int = 10):
        super().__init__(min_chars=min_chars)
        try:
            from openai import OpenAI  # type: ignore
        except ImportError as e:  # pragma: no cover
            raise RuntimeError("openai package not installed. Install with: pip install 'atheria[llm]'") from e

        self._client = OpenAI()
        self._model = os.getenv("ATHERIA_OPENAI_MODEL") or model or "gpt-4o-mini"
        self._timeout = timeout

    def _chat(self, system_msg: str, user_msg: str, *, json_mode: bool = False) -> str:
        kwargs = {"response_format": {"type": "json_object"}} if json_mode else {}
        resp = self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": system_msg},
                {"role": "user", "content": user_msg},
            ],
            temperature=0.7,
            max_tokens=400,
            timeout=self._timeout,  # type: ignore[arg-type]
            **kwargs,
        )
        return (resp.choices[0].message.content or "").strip()

    def _analyze(self, text: str) -> AnalysisResult:
        from openai import OpenAIError  # type: ignore

        try:
            out = self._chat(_ANALYZE_SYSTEM, f"Journal Entry:\n{text}", json_mode=True)
        except OpenAIError as e:
            raise AnalysisError(f"analysis request failed: {e}") from e
        if not out:
            raise AnalysisError("No response from AI")
        try:
            data = json.loads(out)
        except json.JSONDecodeError as e:
            raise AnalysisError(f"analysis response is not JSON: {out[:80]!r}") from e
        if not isinstance(data, dict):
            raise AnalysisError("analysis response is not a JSON object")
        return normalize_analysis(data)

    def _continue(self, text: str) -> str:
        from openai import OpenAIError  # type: ignore

        try:
            return self._chat(_CONTINUE_SYSTEM, f"Current Text:\n{text}")
        except OpenAIError as e:
            raise ContinuationError(str(e)) from e
