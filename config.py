"""
配置模块
从环境变量读取 AI 提供商、模型、端点、系统提示词和密钥，
构造不可变配置对象，在会话创建时一次性传入。
"""

import os
from dataclasses import dataclass
from enum import Enum

from errors import ConfigurationMissing, UnsupportedProvider

DEFAULT_SYSTEM_PROMPT = "你是一个专业的测试用例生成助手。"

OPENAI_API_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"

DEFAULT_OPENAI_MODEL = "gpt-4"
DEFAULT_ANTHROPIC_MODEL = "claude-3-opus-20240229"


class ProviderFamily(Enum):
    """两种流式协议：delta 风格（OpenAI 兼容）与 content-block 风格（Anthropic）"""

    DELTA = "delta"
    CONTENT_BLOCK = "content_block"


_PROVIDER_FAMILIES = {
    "openai": ProviderFamily.DELTA,
    "custom": ProviderFamily.DELTA,
    "anthropic": ProviderFamily.CONTENT_BLOCK,
}


def provider_family_for(provider):
    family = _PROVIDER_FAMILIES.get((provider or "").strip().lower())
    if family is None:
        raise UnsupportedProvider(f"不支持的 AI 提供商: {provider}")
    return family


@dataclass(frozen=True)
class GeneratorConfig:
    provider: str = "openai"
    model: str = DEFAULT_OPENAI_MODEL
    endpoint: str = OPENAI_API_URL
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    api_key: str = ""

    @property
    def provider_family(self) -> ProviderFamily:
        return provider_family_for(self.provider)

    @classmethod
    def from_env(cls, environ=None):
        """
        读取环境变量:
        AI_PROVIDER, AI_MODEL, AI_API_ENDPOINT, AI_SYSTEM_PROMPT, AI_API_KEY
        未设置的项按提供商取默认值。
        """
        env = os.environ if environ is None else environ
        provider = (env.get("AI_PROVIDER") or "openai").strip().lower()
        family = provider_family_for(provider)
        if family is ProviderFamily.CONTENT_BLOCK:
            default_model, default_endpoint = DEFAULT_ANTHROPIC_MODEL, ANTHROPIC_API_URL
        else:
            default_model, default_endpoint = DEFAULT_OPENAI_MODEL, OPENAI_API_URL
        return cls(
            provider=provider,
            model=env.get("AI_MODEL") or default_model,
            endpoint=env.get("AI_API_ENDPOINT") or default_endpoint,
            system_prompt=env.get("AI_SYSTEM_PROMPT") or DEFAULT_SYSTEM_PROMPT,
            api_key=env.get("AI_API_KEY", ""),
        )


def require_api_key(config):
    """会话开始前的前置检查，缺少密钥时抛出 ConfigurationMissing"""
    if not config.api_key:
        raise ConfigurationMissing("请先配置 AI API 密钥（环境变量 AI_API_KEY）。")
    return config
