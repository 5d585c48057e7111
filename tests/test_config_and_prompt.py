"""配置读取与提示词构建"""

import pytest

from config import (
    ANTHROPIC_API_URL,
    DEFAULT_SYSTEM_PROMPT,
    OPENAI_API_URL,
    GeneratorConfig,
    ProviderFamily,
    provider_family_for,
    require_api_key,
)
from errors import ConfigurationMissing, UnsupportedProvider
from prompt_builder import MAX_DIFF_LENGTH, build_prompt


class TestConfig:
    @pytest.mark.parametrize(
        "provider,family",
        [("openai", ProviderFamily.DELTA), ("custom", ProviderFamily.DELTA), ("Anthropic", ProviderFamily.CONTENT_BLOCK)],
    )
    def test_provider_family(self, provider, family):
        assert provider_family_for(provider) is family

    def test_unsupported_provider(self):
        with pytest.raises(UnsupportedProvider, match="不支持的 AI 提供商: gemini"):
            provider_family_for("gemini")

    def test_from_env_defaults(self):
        config = GeneratorConfig.from_env({})
        assert config.provider == "openai"
        assert config.model == "gpt-4"
        assert config.endpoint == OPENAI_API_URL
        assert config.system_prompt == DEFAULT_SYSTEM_PROMPT
        assert config.api_key == ""

    def test_from_env_anthropic_defaults(self):
        config = GeneratorConfig.from_env({"AI_PROVIDER": "anthropic", "AI_API_KEY": "k"})
        assert config.provider_family is ProviderFamily.CONTENT_BLOCK
        assert config.model == "claude-3-opus-20240229"
        assert config.endpoint == ANTHROPIC_API_URL

    def test_from_env_overrides(self):
        env = {
            "AI_PROVIDER": "custom",
            "AI_MODEL": "deepseek-chat",
            "AI_API_ENDPOINT": "https://api.deepseek.com/v1/chat/completions",
            "AI_SYSTEM_PROMPT": "你是测试专家",
            "AI_API_KEY": "sk-1",
        }
        config = GeneratorConfig.from_env(env)
        assert config.model == "deepseek-chat"
        assert config.endpoint == "https://api.deepseek.com/v1/chat/completions"
        assert config.system_prompt == "你是测试专家"
        assert config.api_key == "sk-1"

    def test_config_is_immutable(self, openai_config):
        with pytest.raises(Exception):
            openai_config.api_key = "other"

    def test_require_api_key(self, openai_config):
        assert require_api_key(openai_config) is openai_config
        with pytest.raises(ConfigurationMissing):
            require_api_key(GeneratorConfig())


class TestBuildPrompt:
    def test_contains_commits_and_diff(self):
        prompt = build_prompt("+added line", ["a1 第一次提交", "b2 第二次提交"])
        assert "a1 第一次提交\nb2 第二次提交" in prompt
        assert "```diff\n+added line \n```" in prompt
        assert "### 需求" in prompt
        assert "### 测试用例" in prompt
        assert "已截断" not in prompt

    def test_truncates_long_diff(self):
        diff = "x" * (MAX_DIFF_LENGTH + 50)
        prompt = build_prompt(diff, [])
        assert "x" * MAX_DIFF_LENGTH + " ...(已截断)" in prompt
        assert "x" * (MAX_DIFF_LENGTH + 1) not in prompt
