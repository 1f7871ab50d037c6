"""Tests for LLMAgentRunner and LLMClient."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from agent_tuner.clients import LLMClient, llm_client
from agent_tuner.config import Settings
from agent_tuner.errors import ConfigurationError
from agent_tuner.execution import LLMAgentRunner, render_prompt

from conftest import FakeLLMClient, make_configuration


class TestRenderPrompt:
    """render_prompt"""

    def test_placeholder(self):
        assert render_prompt("Rate: {input}", "great") == "Rate: great"

    def test_structured_input_is_json(self):
        assert render_prompt("Rate: {input}", {"text": "ok"}) == 'Rate: {"text": "ok"}'

    def test_appends_without_placeholder(self):
        assert render_prompt("Rate this", "great") == "Rate this\n\ngreat"


class TestLLMAgentRunner:
    """LLMAgentRunner.run"""

    def test_run(self, configurations, prompts):
        llm = FakeLLMClient(['  {"score": 8}  '])
        runner = LLMAgentRunner(llm, configurations, prompts)
        output = asyncio.run(runner.run({"text": "nice"}, "base"))

        assert output.output == '{"score": 8}'
        assert output.metadata["model"] == "gpt-4o-mini"
        request = llm.requests[0]
        assert request["temperature"] == 0.5
        assert request["messages"][0]["role"] == "system"
        assert request["messages"][1]["content"] == 'Rate this review from 0 to 10: {"text": "nice"}'

    def test_no_schema_no_system_message(self, prompts):
        from agent_tuner.repositories import InMemoryConfigurationRepository

        configurations = InMemoryConfigurationRepository([make_configuration(output_schema=None)])
        llm = FakeLLMClient(["positive"])
        asyncio.run(LLMAgentRunner(llm, configurations, prompts).run("nice", "base"))
        assert [m["role"] for m in llm.requests[0]["messages"]] == ["user"]

    def test_unknown_configuration(self, configurations, prompts):
        runner = LLMAgentRunner(FakeLLMClient(), configurations, prompts)
        with pytest.raises(ConfigurationError):
            asyncio.run(runner.run("x", "missing"))

    def test_unknown_prompt(self, configurations):
        from agent_tuner.repositories import InMemoryPromptRepository

        runner = LLMAgentRunner(FakeLLMClient(), configurations, InMemoryPromptRepository())
        with pytest.raises(ConfigurationError):
            asyncio.run(runner.run("x", "base"))


class TestLLMClient:
    """LLMClient request building"""

    def test_request_fields(self):
        client = LLMClient(Settings(api_key="sk-test", model="gpt-4o-mini", temperature=0.3))
        response = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="hello"))],
            usage=SimpleNamespace(total_tokens=12)
        )
        client.async_client.chat.completions.create = AsyncMock(return_value=response)

        content = asyncio.run(client.achat_completion(
            [{"role": "user", "content": "hi"}], max_tokens=50, json_mode=True
        ))

        assert content == "hello"
        kwargs = client.async_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_tokens"] == 50
        assert kwargs["response_format"] == {"type": "json_object"}

    def test_errors_propagate(self):
        client = LLMClient(Settings(api_key="sk-test"))
        client.async_client.chat.completions.create = AsyncMock(side_effect=RuntimeError("boom"))
        with pytest.raises(RuntimeError):
            asyncio.run(client.achat_completion([{"role": "user", "content": "hi"}]))

    def test_rate_limits_are_retried(self, monkeypatch):
        class FakeRateLimit(Exception):
            pass

        monkeypatch.setattr(llm_client, "RateLimitError", FakeRateLimit)
        monkeypatch.setattr(llm_client, "INITIAL_RETRY_DELAY", 0.0)
        client = LLMClient(Settings(api_key="sk-test"))
        response = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="ok"))],
            usage=None
        )
        client.async_client.chat.completions.create = AsyncMock(
            side_effect=[FakeRateLimit(), FakeRateLimit(), response]
        )

        assert asyncio.run(client.achat_completion([{"role": "user", "content": "hi"}])) == "ok"
        assert client.async_client.chat.completions.create.call_count == 3

    def test_rate_limit_gives_up(self, monkeypatch):
        class FakeRateLimit(Exception):
            pass

        monkeypatch.setattr(llm_client, "RateLimitError", FakeRateLimit)
        monkeypatch.setattr(llm_client, "INITIAL_RETRY_DELAY", 0.0)
        client = LLMClient(Settings(api_key="sk-test"))
        client.async_client.chat.completions.create = AsyncMock(side_effect=FakeRateLimit())

        with pytest.raises(FakeRateLimit):
            asyncio.run(client.achat_completion([{"role": "user", "content": "hi"}]))
        assert client.async_client.chat.completions.create.call_count == llm_client.MAX_RETRIES

    def test_token_estimate(self):
        assert FakeLLMClient().count_tokens("x" * 40) == 10
