"""Tests for settings and wizard configuration loading."""

import pytest
from pydantic import ValidationError

from specwizard.core.config import (
    CompletenessConfig,
    Settings,
    WizardConfig,
    load_wizard_config,
)


def test_wizard_config_defaults():
    """Defaults match the documented tunables."""
    config = WizardConfig()

    assert config.conversation.min_messages_for_completion == 20
    assert config.conversation.history_window == 10
    assert config.conversation.discovery_missing_threshold == 3
    assert config.completeness.simple_max_score == 5.0
    assert config.completeness.medium_max_score == 15.0
    assert config.rate_limit.max_requests_per_minute == 60
    assert config.rate_limit.window_seconds == 60.0
    assert config.magic_link.token_bytes == 16


def test_load_wizard_config_reads_yaml(tmp_path):
    config_file = tmp_path / "wizard_config.yaml"
    config_file.write_text(
        "conversation:\n"
        "  min_messages_for_completion: 8\n"
        "rate_limit:\n"
        "  max_requests_per_minute: 5\n"
    )

    config = load_wizard_config(config_file)

    assert config.conversation.min_messages_for_completion == 8
    assert config.conversation.history_window == 10
    assert config.rate_limit.max_requests_per_minute == 5


def test_load_wizard_config_missing_file_uses_defaults(tmp_path):
    config = load_wizard_config(tmp_path / "missing.yaml")
    assert config == WizardConfig()


def test_load_wizard_config_empty_file_uses_defaults(tmp_path):
    config_file = tmp_path / "wizard_config.yaml"
    config_file.write_text("")
    assert load_wizard_config(config_file) == WizardConfig()


def test_completeness_tiers_must_be_ordered():
    with pytest.raises(ValidationError):
        CompletenessConfig(simple_max_score=10, medium_max_score=5)


def test_magic_link_tokens_need_128_bits():
    with pytest.raises(ValidationError):
        WizardConfig(magic_link={"token_bytes": 8})


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("LLM_PRIMARY_PROVIDER", "openai")
    monkeypatch.setenv("PORT", "9001")

    settings = Settings(_env_file=None)

    assert settings.llm_primary_provider == "openai"
    assert settings.port == 9001
