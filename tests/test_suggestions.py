# tests/test_suggestions.py

from __future__ import annotations

from types import SimpleNamespace

import httpx
import openai
import pytest

from streaklane.cli.bootstrap import build_ranker
from streaklane.core.models import Severity, Task
from streaklane.llm.client import OpenAICompatibleClient, friendly_llm_error_message
from streaklane.llm.offline import OfflineSuggestionRanker
from streaklane.tasks.suggestions import SYSTEM_PROMPT, LLMSuggestionRanker, parse_picks

from .fakes import FakeLLMClient


def _task(task_id: str, severity: Severity, *, due: float | None = None, position: int = 0) -> Task:
    return Task(
        id=task_id,
        user_id="alice",
        title=f"task {task_id}",
        severity=severity,
        position=position,
        created_at=0.0,
        due_date=due,
    )


def _llm_settings(**kw) -> SimpleNamespace:
    base = dict(
        suggestions_enabled=True,
        openai_api_key="sk-test",
        openai_base_url="http://llm.invalid/v1",
        llm_models=["model-a", "model-b"],
        llm_connect_timeout=1.0,
        llm_read_timeout=1.0,
    )
    base.update(kw)
    return SimpleNamespace(**base)


def _status_error(cls: type[openai.APIStatusError], status: int) -> openai.APIStatusError:
    request = httpx.Request("POST", "http://llm.invalid/v1/chat/completions")
    return cls("failed", response=httpx.Response(status, request=request), body=None)


class _FakeCompletions:
    def __init__(self, outcomes: dict[str, object]) -> None:
        self.outcomes = outcomes
        self.models: list[str] = []

    def create(self, *, model: str, messages, temperature, max_tokens):
        self.models.append(model)
        outcome = self.outcomes[model]
        if isinstance(outcome, Exception):
            raise outcome
        message = SimpleNamespace(content=outcome)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client_with(outcomes: dict[str, object]) -> tuple[OpenAICompatibleClient, _FakeCompletions]:
    client = OpenAICompatibleClient(_llm_settings(llm_models=list(outcomes)))
    completions = _FakeCompletions(outcomes)
    client._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))  # type: ignore[assignment]
    return client, completions


def test_parse_picks_accepts_fenced_json() -> None:
    text = '```json\n[{"id": "a", "reason": " soon "}, {"reason": "no id"}, "junk"]\n```'
    assert parse_picks(text) == [("a", "soon")]


@pytest.mark.parametrize("text", ["", "not json", '{"id": "a"}'])
def test_parse_picks_rejects_non_arrays(text: str) -> None:
    with pytest.raises(ValueError):
        parse_picks(text)


def test_llm_ranker_sends_open_tasks_only() -> None:
    llm = FakeLLMClient('[{"id": "b", "reason": "due tomorrow"}]')
    done = _task("c", Severity.LOW)
    done.is_completed = True
    tasks = [_task("a", Severity.LOW), _task("b", Severity.HIGH, due=1_000_000.0), done]

    picks = LLMSuggestionRanker(llm).rank(tasks, limit=2)

    assert picks == [("b", "due tomorrow")]
    messages, system_prompt = llm.calls[0]
    assert system_prompt == SYSTEM_PROMPT
    prompt = messages[0]["content"]
    assert "suggest which 2 tasks" in prompt
    assert '"id": "a"' in prompt
    assert '"id": "c"' not in prompt
    assert "No due date" in prompt


def test_llm_ranker_propagates_bad_answers() -> None:
    with pytest.raises(ValueError):
        LLMSuggestionRanker(FakeLLMClient("I think you should rest.")).rank(
            [_task("a", Severity.LOW)], limit=1
        )


def test_offline_ranker_orders_by_due_then_severity() -> None:
    tasks = [
        _task("undated-high", Severity.HIGH),
        _task("late-low", Severity.LOW, due=2_000_000.0),
        _task("soon-low", Severity.LOW, due=1_000_000.0),
        _task("soon-high", Severity.HIGH, due=1_000_000.0),
        _task("undated-low-1", Severity.LOW, position=1),
        _task("undated-low-0", Severity.LOW, position=0),
    ]
    picks = OfflineSuggestionRanker().rank(tasks, limit=10)

    assert [p[0] for p in picks] == [
        "soon-high",
        "soon-low",
        "late-low",
        "undated-high",
        "undated-low-0",
        "undated-low-1",
    ]
    assert picks[3][1] == "No due date; high severity."
    assert picks[0][1].startswith("Due ")
    assert len(OfflineSuggestionRanker().rank(tasks, limit=2)) == 2


def test_build_ranker_selects_source() -> None:
    ranker, source = build_ranker(_llm_settings(openai_api_key=None))
    assert source == "offline"
    assert isinstance(ranker, OfflineSuggestionRanker)

    ranker, source = build_ranker(_llm_settings(llm_models=[]))
    assert source == "offline"

    ranker, source = build_ranker(_llm_settings())
    assert source == "llm"
    assert isinstance(ranker, LLMSuggestionRanker)

    assert build_ranker(_llm_settings(suggestions_enabled=False)) == (None, "disabled")


def test_friendly_messages_for_missing_config() -> None:
    with pytest.raises(RuntimeError) as exc_info:
        OpenAICompatibleClient(_llm_settings(openai_api_key=" "))
    assert "missing API key" in friendly_llm_error_message(exc_info.value)
    assert friendly_llm_error_message(RuntimeError("")) == "LLM error."


def test_client_falls_back_across_models() -> None:
    client, completions = _client_with(
        {
            "model-a": _status_error(openai.NotFoundError, 404),
            "model-b": _status_error(openai.RateLimitError, 429),
            "model-c": "  [] ",
        }
    )
    assert client.complete([{"role": "user", "content": "hi"}], "sys") == "[]"
    assert completions.models == ["model-a", "model-b", "model-c"]

    # The 404 model is skipped while its cooldown lasts.
    completions.models.clear()
    client.complete([{"role": "user", "content": "hi"}], "sys")
    assert completions.models == ["model-b", "model-c"]


def test_client_fails_fast_on_auth_error() -> None:
    client, completions = _client_with(
        {"model-a": _status_error(openai.AuthenticationError, 401), "model-b": "ok"}
    )
    with pytest.raises(RuntimeError, match="authentication failed"):
        client.complete([{"role": "user", "content": "hi"}], "sys")
    assert completions.models == ["model-a"]


def test_client_reports_when_every_model_fails() -> None:
    client, _ = _client_with(
        {
            "model-a": _status_error(openai.RateLimitError, 429),
            "model-b": _status_error(openai.RateLimitError, 429),
        }
    )
    with pytest.raises(RuntimeError, match="rate-limited"):
        client.complete([{"role": "user", "content": "hi"}], "sys")

    client, _ = _client_with({"model-a": "", "model-b": ""})
    with pytest.raises(RuntimeError, match="All LLM models failed"):
        client.complete([{"role": "user", "content": "hi"}], "sys")
