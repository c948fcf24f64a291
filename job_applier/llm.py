"""
Language Model Client
=====================
A single text-completion call behind the LanguageModel interface.

ChatCompletionModel talks to any OpenAI-compatible chat-completions endpoint
(Groq by default, OpenRouter as an alternative) and walks a list of models,
moving to the next one when a model is rate limited or unavailable.

Callers parse replies with extract_json() and treat a None result as a soft
failure. LanguageModelError is raised only when every model failed.
"""

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import requests

from job_applier.config import LLMConfig
from job_applier.errors import LanguageModelError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


class LanguageModel(ABC):
    """Anything that can turn a prompt into text."""

    @abstractmethod
    async def complete(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        """Return the model's reply. Raises LanguageModelError on failure."""


class ChatCompletionModel(LanguageModel):
    def __init__(self, config: LLMConfig, session: Optional[requests.Session] = None):
        if not config.is_configured:
            raise LanguageModelError("No model API key configured")
        self.config = config
        self.session = session or requests.Session()

    def _post(self, model: str, prompt: str, max_tokens: int) -> str:
        response = self.session.post(
            self.config.base_url,
            headers={
                "Authorization": f"Bearer {self.config.api_key}",
                "Content-Type": "application/json",
            },
            json={
                "model": model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": self.config.temperature,
                "max_tokens": max_tokens,
            },
            timeout=self.config.timeout,
        )
        response.raise_for_status()
        return response.json()["choices"][0]["message"]["content"]

    def complete_sync(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        errors: List[str] = []
        for model in self.config.models:
            try:
                return self._post(model, prompt, max_tokens or self.config.max_tokens)
            except requests.RequestException as exc:
                logger.warning("Model %s failed: %s, trying next", model, exc)
                errors.append(f"{model}: {exc}")
            except (KeyError, IndexError, ValueError) as exc:
                logger.warning("Model %s returned an unexpected payload: %s", model, exc)
                errors.append(f"{model}: malformed response")
        raise LanguageModelError("All models failed", {"errors": errors})

    async def complete(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        # requests is blocking; keep the event loop free while the call runs
        return await asyncio.to_thread(self.complete_sync, prompt, max_tokens)


def extract_json(text: str) -> Optional[Any]:
    """
    Pull a JSON value out of a model reply.

    Handles bare JSON, ```json fenced blocks, and prose wrapped around a
    single object or array. Returns None when nothing parses.
    """
    if not text:
        return None
    candidates = [text.strip()]
    fenced = _FENCE_RE.search(text)
    if fenced:
        candidates.insert(0, fenced.group(1).strip())
    for opener, closer in (("{", "}"), ("[", "]")):
        start, end = text.find(opener), text.rfind(closer)
        if start != -1 and end > start:
            candidates.append(text[start:end + 1])
    for candidate in candidates:
        try:
            return json.loads(candidate)
        except ValueError:
            continue
    return None
