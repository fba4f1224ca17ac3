from __future__ import annotations

from typing import Protocol

from openai import OpenAI

from insurance_inbox.config.settings import FallbackConfig

SYSTEM_PROMPT = "You are an AI email validator. Output strictly valid JSON."


class LanguageModel(Protocol):
    """A language model seen as a pure function: prompt in, raw reply text out."""

    def complete(self, prompt: str) -> str: ...


class OpenAICompatibleModel:
    """
    Chat-completions client for any OpenAI-compatible endpoint (Groq by default).
    Retries are disabled: one attempt, bounded by the configured timeout.
    """

    def __init__(self, cfg: FallbackConfig, client: OpenAI | None = None):
        self._cfg = cfg
        self._client = client or OpenAI(
            api_key=cfg.api_key,
            base_url=cfg.base_url,
            timeout=cfg.timeout_seconds,
            max_retries=0,
        )

    def complete(self, prompt: str) -> str:
        resp = self._client.chat.completions.create(
            model=self._cfg.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            response_format={"type": "json_object"},
            temperature=self._cfg.temperature,
        )
        if not resp.choices:
            return ""
        return resp.choices[0].message.content or ""
