"""Tests for settings loading and validation."""

import pytest
from pydantic import ValidationError

from studyai.config import Settings


class TestSettings:
    """Test suite for Settings."""

    def test_defaults(self, test_settings):
        assert test_settings.provider_order_list == ["deepseek", "openai", "anthropic", "google"]
        assert test_settings.question_timeout_seconds == 60
        assert test_settings.explanation_timeout_seconds == 120
        assert test_settings.max_tokens == 4096
        assert test_settings.follow_up_max_tokens == 2048
        assert test_settings.question_max_count == 25
        assert test_settings.question_default_count == 10
        assert test_settings.question_sub_batch_size == 8
        assert test_settings.question_overfetch_ratio == 1.5
        assert test_settings.true_false_labels == ("صح", "خطأ")

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-env")
        monkeypatch.setenv("PROVIDER_ORDER", "OpenAI, DeepSeek")
        monkeypatch.setenv("QUESTION_BATCH_STRATEGY", "Sequential")

        config = Settings(_env_file=None)

        assert config.deepseek_api_key == "sk-env"
        assert config.provider_order_list == ["openai", "deepseek"]
        assert config.question_batch_strategy == "sequential"

    def test_unknown_provider_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, provider_order="deepseek,mistral")

    def test_duplicate_provider_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, provider_order="openai,openai")

    def test_unknown_strategy_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, question_batch_strategy="random")

    @pytest.mark.parametrize(
        "field,value",
        [
            ("question_sub_batch_size", 0),
            ("question_max_count", -1),
            ("question_timeout_seconds", 0),
            ("question_overfetch_ratio", 0.5),
        ],
    )
    def test_invalid_tuning_rejected(self, field, value):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: value})

    def test_true_false_labels_must_differ(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, true_false_labels=("yes", "yes"))

    def test_cors_origins_list(self):
        config = Settings(_env_file=None, cors_allow_origins="http://a.test, http://b.test")
        assert config.cors_origins_list == ["http://a.test", "http://b.test"]
