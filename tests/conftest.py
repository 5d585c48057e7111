"""测试公共工具：构造两种协议族的流式数据行"""

import json

import pytest

from config import ANTHROPIC_API_URL, GeneratorConfig
from models import DiffInfo


def delta_line(text):
    return "data: " + json.dumps({"choices": [{"delta": {"content": text}}]}, ensure_ascii=False) + "\n"


def content_block_line(text):
    payload = {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": text}}
    return "data: " + json.dumps(payload, ensure_ascii=False) + "\n"


class EventRecorder:
    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    @property
    def types(self):
        return [event.type for event in self.events]

    def of_type(self, event_type):
        return [event for event in self.events if event.type == event_type]


@pytest.fixture
def openai_config():
    return GeneratorConfig(provider="openai", model="gpt-4", api_key="sk-test")


@pytest.fixture
def anthropic_config():
    return GeneratorConfig(
        provider="anthropic", model="claude-3-opus-20240229", endpoint=ANTHROPIC_API_URL, api_key="sk-ant-test"
    )


@pytest.fixture
def diff_info():
    return DiffInfo(
        branch="feature/login-lock",
        diff="diff --git a/login.py b/login.py\n+MAX_RETRY = 3\n",
        files=("login.py",),
        commits=("abc123 增加登录失败锁定",),
    )


@pytest.fixture
def recorder():
    return EventRecorder()
