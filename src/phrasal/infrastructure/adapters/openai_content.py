import asyncio
import json
import logging
import re
from typing import Any

import httpx

from phrasal.domain.constants import (
    DEFAULT_BACKOFF_SECONDS,
    DEFAULT_MAX_RETRIES,
    LLM_MAX_TOKENS,
    LLM_TEMPERATURE,
    REQUEST_TIMEOUT,
)
from phrasal.domain.errors import ProviderFailure
from phrasal.domain.models import (
    DrillBlank,
    DrillExercise,
    LanguageContext,
    NarrativeReference,
    NarrativeResult,
    Phrase,
)
from phrasal.domain.ports import DrillGenerator, NarrativeGenerator, SpeechSynthesizer

from .prompts import cloze_prompt, story_prompt

JSON_BLOCK = re.compile(r"\{[\s\S]*\}|\[[\s\S]*\]")

# Status codes worth another attempt
RETRYABLE_STATUS = {408, 409, 429, 500, 502, 503, 504}


def extract_json(content: str) -> Any:
    """Parse the first JSON object or array in a model response."""
    match = JSON_BLOCK.search(content or "")
    if not match:
        raise ValueError("No JSON found in response")
    return json.loads(match.group(0))


class OpenAIContentAdapter(NarrativeGenerator, DrillGenerator, SpeechSynthesizer):
    """Adapter for an OpenAI-compatible HTTP API (chat completions and speech)."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str = "gpt-4o-mini",
        speech_model: str = "tts-1",
        voice: str = "alloy",
        timeout: float = REQUEST_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        client: httpx.AsyncClient | None = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.speech_model = speech_model
        self.voice = voice
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self._headers = {"Authorization": f"Bearer {api_key}"}
        self._client = client
        self.logger.debug(
            f"OpenAIContentAdapter initialized with base_url={self.base_url} model={self.model}"
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def generate_narrative(
        self, phrases: list[Phrase], context: LanguageContext
    ) -> NarrativeResult | None:
        if not phrases:
            return None
        content = await self._chat("generate narrative", story_prompt(phrases, context))
        try:
            data = extract_json(content)
            story = data.get("story") if isinstance(data, dict) else None
            if not story:
                raise ValueError("response is missing the story field")

            references = [
                NarrativeReference(
                    phrase=str(ref.get("phrase", "")),
                    position=int(ref.get("position", 0)),
                    gloss=str(ref.get("gloss") or ""),
                )
                for ref in data.get("usedPhrases") or []
                if isinstance(ref, dict)
            ]
            metadata = data.get("metadata") or {}
        except (ValueError, TypeError, AttributeError) as e:
            raise ProviderFailure("generate narrative", f"Malformed response: {e}") from e

        return NarrativeResult(text=story, item_references=references, metadata=metadata)

    async def generate_drill_exercises(
        self, phrases: list[Phrase], context: LanguageContext, count: int
    ) -> list[DrillExercise]:
        if not phrases or count <= 0:
            return []
        content = await self._chat(
            "generate drill exercises", cloze_prompt(phrases, context, count)
        )
        try:
            data = extract_json(content)
            if isinstance(data, dict):
                data = data.get("exercises", [])
            exercises = []
            for index, raw in enumerate(data, start=1):
                blanks = [
                    DrillBlank(
                        position=int(blank.get("position", 0)),
                        answer=str(blank.get("answer", "")),
                        alternatives=tuple(blank.get("alternatives") or ()),
                    )
                    for blank in raw.get("blanks") or []
                ]
                difficulty = raw.get("difficulty")
                exercises.append(
                    DrillExercise(
                        id=str(raw.get("id") or f"exercise_{index}"),
                        text=str(raw.get("text", "")),
                        blanks=blanks,
                        explanation=str(raw.get("explanation") or ""),
                        difficulty=int(difficulty) if difficulty is not None else None,
                    )
                )
        except (ValueError, TypeError, AttributeError) as e:
            raise ProviderFailure(
                "generate drill exercises", f"Malformed response: {e}"
            ) from e

        return exercises[:count]

    async def synthesize(self, text: str, language: str) -> bytes:
        payload = {
            "model": self.speech_model,
            "voice": self.voice,
            "input": text,
            "response_format": "mp3",
        }
        resp = await self._post("synthesize speech", "/audio/speech", payload)
        self.logger.debug(f"Synthesized {len(resp.content)} bytes of {language} audio")
        return resp.content

    async def _chat(self, operation: str, prompt: str) -> str:
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": LLM_TEMPERATURE,
            "max_tokens": LLM_MAX_TOKENS,
        }
        resp = await self._post(operation, "/chat/completions", payload)
        try:
            return resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderFailure(operation, f"Unexpected response shape: {e}") from e

    async def _post(self, operation: str, path: str, payload: dict) -> httpx.Response:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)

        url = f"{self.base_url}{path}"
        attempt = 0
        while True:
            try:
                resp = await self._client.post(url, json=payload, headers=self._headers)
                resp.raise_for_status()
                return resp
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status not in RETRYABLE_STATUS or attempt >= self.max_retries:
                    self.logger.error(f"{operation} call failed with HTTP {status}")
                    raise ProviderFailure(operation, f"HTTP {status}") from e
                self.logger.warning(f"{operation} got HTTP {status}, retrying")
            except httpx.HTTPError as e:
                if attempt >= self.max_retries:
                    self.logger.error(f"{operation} call failed: {e}")
                    raise ProviderFailure(operation, str(e) or type(e).__name__) from e
                self.logger.warning(f"{operation} transport error ({e}), retrying")

            await asyncio.sleep(self.backoff_seconds * (2**attempt))
            attempt += 1
