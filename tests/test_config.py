"""Tests for Settings."""

import pytest

from agent_tuner.config import Settings
from agent_tuner.models import CostLimits


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("AGENT_TUNER_API_KEY", "OPENAI_API_KEY", "API_KEY", "AGENT_TUNER_MODEL", "AGENT_TUNER_BASE_URL"):
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    """Environment and direct initialization"""

    def test_defaults(self):
        settings = Settings()
        assert settings.api_key == ""
        assert settings.model == "gpt-4o-mini"
        assert settings.judge_configuration_key == "system_llm_judge"
        assert settings.runs_dir == "runs"

    def test_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("AGENT_TUNER_MODEL", "gpt-4o")
        monkeypatch.setenv("AGENT_TUNER_BASE_URL", "http://localhost:8000/v1")
        settings = Settings()
        assert settings.model == "gpt-4o"
        assert settings.base_url == "http://localhost:8000/v1"

    def test_openai_api_key_alias(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
        assert Settings().api_key == "sk-openai"

    def test_prefixed_key_wins(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
        monkeypatch.setenv("AGENT_TUNER_API_KEY", "sk-tuner")
        assert Settings().api_key == "sk-tuner"

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("AGENT_TUNER_RUNS_DIR=out\n", encoding="utf-8")
        assert Settings().runs_dir == "out"

    def test_direct_initialization(self):
        assert Settings(api_key="sk-direct", temperature=0.1).temperature == 0.1

    def test_cost_per_token_matches_grid_default(self):
        assert Settings().default_cost_per_token == CostLimits().cost_per_token
