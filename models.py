"""
数据模型模块
流式片段、测试用例、解析结果以及 Git 差异信息
"""

from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class TextFragment:
    """一次增量输出：delta 为新增文本，cumulative 为截至目前的完整文本"""

    delta: str
    cumulative: str


@dataclass(frozen=True)
class TestCase:
    title: str
    operation: str = ""
    expected: str = ""

    # 避免 pytest 将其当作测试类收集
    __test__ = False

    def to_dict(self):
        return {"title": self.title, "operation": self.operation, "expected": self.expected}


@dataclass(frozen=True)
class TestCaseCategory:
    category: str
    cases: Tuple[TestCase, ...] = ()

    __test__ = False

    def to_dict(self):
        return {"category": self.category, "cases": [case.to_dict() for case in self.cases]}


@dataclass(frozen=True)
class ExtractionResult:
    """
    结构化解析结果。
    raw_text 始终为解析器收到的原始完整文本；requirement 永不为空；
    categories 在未识别到任何用例时为空。
    """

    requirement: str
    categories: Tuple[TestCaseCategory, ...]
    raw_text: str

    def to_dict(self):
        return {
            "requirement": self.requirement,
            "categories": [category.to_dict() for category in self.categories],
            "rawText": self.raw_text,
        }


@dataclass(frozen=True)
class DiffInfo:
    """由 Git 差异收集方提供的上下文"""

    branch: str
    diff: str
    files: Tuple[str, ...] = field(default_factory=tuple)
    commits: Tuple[str, ...] = field(default_factory=tuple)
