from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from insurance_inbox.config.settings import FallbackConfig
from insurance_inbox.llm.client import LanguageModel, OpenAICompatibleModel
from insurance_inbox.llm.json_extract import extract_first_json_object

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """You are validating whether an email is a legitimate insurance-related communication.

Rules:
- Answer ONLY with valid JSON
- Do NOT guess
- If unsure, return false

Given:
Subject: {subject}
Sender: {sender}
Snippet: {snippet}

Respond with:
{{
  "is_insurance": true | false,
  "confidence": number (0-1)
}}"""


@dataclass(frozen=True)
class FallbackResult:
    is_insurance: bool
    confidence: float

    @classmethod
    def rejection(cls) -> "FallbackResult":
        return cls(is_insurance=False, confidence=0.0)


def build_prompt(*, sender: str, subject: str, snippet: str) -> str:
    return PROMPT_TEMPLATE.format(subject=subject or "", sender=sender or "", snippet=snippet or "")


def parse_verdict(text: Optional[str]) -> FallbackResult:
    """
    Keep only the boolean + confidence pair from the model reply.
    Anything malformed is a rejection; free-text reasoning is dropped.
    """
    data = extract_first_json_object(text)
    if data is None:
        return FallbackResult.rejection()
    return _verdict_from_dict(data)


def _verdict_from_dict(data: Dict[str, Any]) -> FallbackResult:
    is_insurance = data.get("is_insurance")
    confidence = data.get("confidence")

    if not isinstance(is_insurance, bool):
        return FallbackResult.rejection()
    # bool is an int subclass; "confidence": true is not a number here.
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        return FallbackResult.rejection()

    return FallbackResult(is_insurance=is_insurance, confidence=min(max(float(confidence), 0.0), 1.0))


class FallbackValidator:
    """
    Second opinion for borderline scores. Validates, never classifies:
    a result is honored only when is_insurance is true and confidence clears
    the threshold. Never retries and never raises.
    """

    def __init__(self, cfg: FallbackConfig, model: Optional[LanguageModel] = None):
        self._cfg = cfg
        if model is None and cfg.api_key:
            model = OpenAICompatibleModel(cfg)
        self._model = model

    @property
    def enabled(self) -> bool:
        return self._model is not None

    def accepts(self, result: FallbackResult) -> bool:
        return result.is_insurance and result.confidence >= self._cfg.acceptance_threshold

    def validate(self, *, sender: str, subject: str, snippet: str) -> FallbackResult:
        if self._model is None:
            logger.info("[fallback] No API key configured, treating borderline email as non-insurance")
            return FallbackResult.rejection()

        prompt = build_prompt(sender=sender, subject=subject, snippet=snippet)
        try:
            text = self._model.complete(prompt)
        except Exception as exc:
            # Timeouts, connection errors and non-2xx responses all land here.
            logger.warning("[fallback] Validation call failed (%s: %s), treating as non-insurance",
                           type(exc).__name__, exc)
            return FallbackResult.rejection()

        result = parse_verdict(text)
        logger.debug("[fallback] is_insurance=%s confidence=%.2f", result.is_insurance, result.confidence)
        return result
