from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List

import pytest

from fakes import FakeModel
from insurance_inbox.config.settings import FallbackConfig
from insurance_inbox.llm.client import OpenAICompatibleModel
from insurance_inbox.llm.fallback import FallbackResult, FallbackValidator, build_prompt, parse_verdict

MAIL = dict(sender="care@insurer.com", subject="Status of your request", snippet="We are processing it.")


def validator_with(reply: str = "", error: Exception | None = None) -> tuple[FallbackValidator, FakeModel]:
    model = FakeModel(reply=reply, error=error)
    return FallbackValidator(FallbackConfig(api_key="test-key"), model=model), model


def test_prompt_carries_sender_subject_and_snippet() -> None:
    prompt = build_prompt(**MAIL)

    assert "Subject: Status of your request" in prompt
    assert "Sender: care@insurer.com" in prompt
    assert "Snippet: We are processing it." in prompt
    assert '"is_insurance": true | false' in prompt


def test_validate_parses_model_reply() -> None:
    validator, model = validator_with('{"is_insurance": true, "confidence": 0.85, "reason": "policy mail"}')

    result = validator.validate(**MAIL)

    assert result == FallbackResult(is_insurance=True, confidence=0.85)
    assert validator.accepts(result)
    assert len(model.prompts) == 1


@pytest.mark.parametrize(
    "result, accepted",
    [
        (FallbackResult(True, 0.7), True),
        (FallbackResult(True, 0.69), False),
        (FallbackResult(False, 0.99), False),
    ],
)
def test_acceptance_threshold(result: FallbackResult, accepted: bool) -> None:
    validator, _ = validator_with()

    assert validator.accepts(result) is accepted


def test_call_failure_is_a_rejection() -> None:
    validator, _ = validator_with(error=TimeoutError("read timed out"))

    assert validator.validate(**MAIL) == FallbackResult.rejection()


def test_unparsable_reply_is_a_rejection() -> None:
    validator, _ = validator_with("I think it is probably insurance.")

    assert validator.validate(**MAIL) == FallbackResult.rejection()


def test_missing_api_key_never_calls_out() -> None:
    validator = FallbackValidator(FallbackConfig(api_key=None))

    assert not validator.enabled
    assert validator.validate(**MAIL) == FallbackResult.rejection()


@pytest.mark.parametrize(
    "reply",
    [
        '{"is_insurance": "true", "confidence": 0.9}',
        '{"is_insurance": true, "confidence": "high"}',
        '{"is_insurance": true, "confidence": true}',
        '{"is_insurance": true}',
    ],
)
def test_parse_verdict_is_strict_about_types(reply: str) -> None:
    assert parse_verdict(reply) == FallbackResult.rejection()


def test_parse_verdict_clamps_confidence() -> None:
    assert parse_verdict('{"is_insurance": true, "confidence": 1.7}').confidence == 1.0
    assert parse_verdict('{"is_insurance": false, "confidence": -3}').confidence == 0.0


class _FakeCompletions:
    def __init__(self, content: str | None):
        self.content = content
        self.calls: List[Dict[str, Any]] = []

    def create(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def test_openai_compatible_model_requests_json_output() -> None:
    completions = _FakeCompletions('{"is_insurance": true, "confidence": 0.9}')
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    cfg = FallbackConfig(api_key="k", model="test-model")

    text = OpenAICompatibleModel(cfg, client=client).complete("prompt text")

    assert text == '{"is_insurance": true, "confidence": 0.9}'
    call = completions.calls[0]
    assert call["model"] == "test-model"
    assert call["response_format"] == {"type": "json_object"}
    assert call["messages"][-1] == {"role": "user", "content": "prompt text"}


def test_openai_compatible_model_handles_empty_content() -> None:
    client = SimpleNamespace(chat=SimpleNamespace(completions=_FakeCompletions(None)))

    assert OpenAICompatibleModel(FallbackConfig(api_key="k"), client=client).complete("p") == ""
