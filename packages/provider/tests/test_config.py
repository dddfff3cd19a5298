"""ProviderConfig + load_provider_config 单元测试

验证环境变量映射、默认值、非法数值回退默认。
"""

import pytest
from pydantic import SecretStr, ValidationError
from tasktree.provider.config import ProviderConfig, load_provider_config

_ENV_VARS = [
    "TASKTREE_LLM_MODE",
    "TASKTREE_LLM_API_BASE",
    "OPENAI_API_KEY",
    "TASKTREE_LLM_MODEL",
    "TASKTREE_LLM_OUTPUT_LANGUAGE",
    "TASKTREE_LLM_TIMEOUT_S",
    "TASKTREE_LLM_MAX_RETRIES",
    "TASKTREE_LLM_INITIAL_BACKOFF_S",
    "TASKTREE_LLM_MAX_BACKOFF_S",
    "TASKTREE_BREAKER_FAILURE_THRESHOLD",
    "TASKTREE_BREAKER_OPEN_DURATION_S",
    "TASKTREE_MAX_CHILDREN",
    "TASKTREE_AMBIGUITY_MIN_CHARS",
    "TASKTREE_AMBIGUITY_MIN_WORDS",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestProviderConfig:
    """ProviderConfig 数据模型测试"""

    def test_default_values(self):
        config = ProviderConfig()
        assert config.llm_mode == "litellm"
        assert config.api_base == "https://api.openai.com/v1"
        assert config.api_key.get_secret_value() == ""
        assert config.max_children == 12
        assert config.ambiguity_min_chars == 20
        assert config.ambiguity_min_words == 3
        assert config.configured is False

    def test_echo_needs_no_key(self):
        assert ProviderConfig(llm_mode="echo").configured is True

    def test_key_makes_configured(self):
        assert ProviderConfig(api_key=SecretStr("sk-1")).configured is True

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            ProviderConfig(timeout_s=0)


class TestLoadProviderConfig:
    """load_provider_config() 环境变量映射测试"""

    def test_default_when_no_env(self, clean_env):
        config = load_provider_config()
        assert config == ProviderConfig()

    def test_env_mapping(self, clean_env):
        clean_env.setenv("TASKTREE_LLM_MODE", "echo")
        clean_env.setenv("TASKTREE_LLM_API_BASE", "http://local:8000/v1")
        clean_env.setenv("OPENAI_API_KEY", "sk-env")
        clean_env.setenv("TASKTREE_LLM_MODEL", "gpt-4.1-mini")
        clean_env.setenv("TASKTREE_LLM_TIMEOUT_S", "7.5")
        clean_env.setenv("TASKTREE_LLM_MAX_RETRIES", "4")
        clean_env.setenv("TASKTREE_BREAKER_FAILURE_THRESHOLD", "9")
        clean_env.setenv("TASKTREE_MAX_CHILDREN", "6")

        config = load_provider_config()

        assert config.llm_mode == "echo"
        assert config.api_base == "http://local:8000/v1"
        assert config.api_key.get_secret_value() == "sk-env"
        assert config.model == "gpt-4.1-mini"
        assert config.timeout_s == 7.5
        assert config.max_retries == 4
        assert config.breaker_failure_threshold == 9
        assert config.max_children == 6

    def test_invalid_numbers_fall_back(self, clean_env):
        clean_env.setenv("TASKTREE_LLM_TIMEOUT_S", "abc")
        clean_env.setenv("TASKTREE_LLM_MAX_RETRIES", "-2")
        clean_env.setenv("TASKTREE_MAX_CHILDREN", "0")

        config = load_provider_config()

        assert config.timeout_s == 30.0
        assert config.max_retries == 2
        assert config.max_children == 12

    def test_invalid_mode_falls_back(self, clean_env):
        clean_env.setenv("TASKTREE_LLM_MODE", "mystery")
        assert load_provider_config().llm_mode == "litellm"
