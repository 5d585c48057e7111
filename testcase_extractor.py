"""
需求与测试用例解析模块
从 AI 返回的 markdown 文本中提取需求描述和分类测试用例。
AI 的输出格式并不稳定（中文序号、阿拉伯数字、# 标题、** 加粗混用，甚至被截断），
因此解析失败时只做降级处理，不抛出异常。
"""

import re

from loguru import logger

from models import ExtractionResult, TestCase, TestCaseCategory

REQUIREMENT_KEYWORD = "需求"
TESTCASE_KEYWORD = "测试用例"
OPERATION_LABEL = "操作"
EXPECTED_LABEL = "期望"

# 每个用例向后最多查找的行数
LOOKAHEAD_LINES = 10
FALLBACK_MIN_LINE_LENGTH = 10
FALLBACK_MAX_LINES = 3
FALLBACK_MAX_LENGTH = 200
REQUIREMENT_PLACEHOLDER = "未能从 AI 响应中提取需求描述，请查看完整文本。"

_CN_NUMERAL_CATEGORY = re.compile(r"^([一二三四五六七八九十]+)、(.+)$")
_ARABIC_CATEGORY = re.compile(r"^([0-9]+)\.\s*(.+)$")
_HEADING_CATEGORY = re.compile(r"^#{1,3}\s*(.+)$")
_CASE_HEADER = re.compile(r"^用例([0-9]+)[:：]\s*(.+)$")
_CASE_PREFIX = re.compile(r"^用例[0-9]+[:：]")
_MARKER_ONLY = re.compile(r"^[#*\-]+$")
_MARKER_OR_RULE = re.compile(r"^[#*\-=]+$")
_INLINE_REQUIREMENT = re.compile(r"需求[：:]\s*([^\n]+)")
_BEFORE_TESTCASES = re.compile(r"测试用例|用例[0-9]+")


def _is_section_marker(line, keyword):
    return (
        re.match(r"#{1,3}\s*" + keyword, line) is not None
        or line == keyword
        or line.startswith(f"**{keyword}**")
    )


def is_requirement_marker(line):
    """'### 需求'、'需求'、'**需求**' 均视为需求段开始"""
    return _is_section_marker(line.strip(), REQUIREMENT_KEYWORD)


def is_testcase_marker(line):
    return _is_section_marker(line.strip(), TESTCASE_KEYWORD)


def is_marker_only(line):
    """只由 # * - = 组成的行（分隔线、空标题等）"""
    return _MARKER_OR_RULE.match(line.strip()) is not None


def match_category_header(line):
    """
    识别分类标题，返回分类名；不是分类标题时返回 None。
    支持 '一、xxx'、'1. xxx'、'## xxx' 三种写法。
    注意任何 1~3 级标题都会被当成分类，装饰性标题会多切出分类。
    """
    line = line.strip()
    for pattern in (_CN_NUMERAL_CATEGORY, _ARABIC_CATEGORY):
        match = pattern.match(line)
        if match:
            return match.group(2)
    match = _HEADING_CATEGORY.match(line)
    if match:
        return match.group(1)
    return None


def match_case_header(line):
    """识别 '用例1: xxx' / '用例1：xxx'，返回用例标题"""
    match = _CASE_HEADER.match(line.strip())
    return match.group(2) if match else None


def match_field(line, label):
    """识别 '* 操作：xxx' 这类字段行，返回字段内容"""
    match = re.match(r"\*\s*" + re.escape(label) + r"[:：]\s*(.+)$", line.strip())
    return match.group(1) if match else None


def _join_requirement(lines):
    parts = [line.strip() for line in lines]
    return " ".join(part for part in parts if part and not _MARKER_ONLY.match(part))


def _lookahead_fields(lines, index):
    """从用例标题的下一行起查找操作和期望，遇到下一个用例或分类即停止"""
    operation = expected = ""
    for next_line in lines[index + 1:index + 1 + LOOKAHEAD_LINES]:
        next_line = next_line.strip()
        if _CASE_PREFIX.match(next_line) or match_category_header(next_line) is not None:
            break
        value = match_field(next_line, OPERATION_LABEL)
        if value is not None:
            operation = value
        value = match_field(next_line, EXPECTED_LABEL)
        if value is not None:
            expected = value
    return operation, expected


def _fallback_requirement(text):
    match = _INLINE_REQUIREMENT.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()

    # 取测试用例之前的有效文本
    before = _BEFORE_TESTCASES.split(text, maxsplit=1)[0]
    meaningful = []
    for line in before.split("\n"):
        line = line.strip()
        if not line or is_marker_only(line) or line == REQUIREMENT_KEYWORD:
            continue
        if len(line) < FALLBACK_MIN_LINE_LENGTH:
            continue
        meaningful.append(line)
    if meaningful:
        return " ".join(meaningful[:FALLBACK_MAX_LINES])[:FALLBACK_MAX_LENGTH]
    return ""


def extract_testcases(text):
    """
    两遍扫描:
      A. 捕获 '需求' 段直到 '测试用例' 段开始
      B. 在 '测试用例' 段内构建 分类 -> 用例 -> 操作/期望
    相同输入总是得到相同结果。
    """
    lines = text.split("\n")
    requirement = ""
    requirement_lines = []
    in_requirement = False
    in_testcases = False

    categories = []
    current_category = None
    current_cases = []

    for index, raw_line in enumerate(lines):
        line = raw_line.strip()

        if is_requirement_marker(line):
            in_requirement, in_testcases = True, False
            requirement_lines = []
            continue

        if is_testcase_marker(line):
            in_requirement, in_testcases = False, True
            if requirement_lines:
                requirement = _join_requirement(requirement_lines)
            continue

        if in_requirement:
            if line and not is_marker_only(line):
                requirement_lines.append(line)
            continue

        if not in_testcases:
            continue

        category = match_category_header(line)
        if category is not None:
            if current_category and current_cases:
                categories.append(TestCaseCategory(current_category, tuple(current_cases)))
            current_category, current_cases = category, []
            continue

        title = match_case_header(line)
        if title is not None:
            operation, expected = _lookahead_fields(lines, index)
            current_cases.append(TestCase(title, operation, expected))

    if current_category and current_cases:
        categories.append(TestCaseCategory(current_category, tuple(current_cases)))

    # 输出被截断在需求段内
    if not requirement and in_requirement and requirement_lines:
        requirement = _join_requirement(requirement_lines)

    if not requirement:
        requirement = _fallback_requirement(text)
        if requirement:
            logger.debug("未找到需求段，已从正文中推断需求描述")

    if not requirement:
        logger.warning("未能从 AI 响应中提取需求描述")
        requirement = REQUIREMENT_PLACEHOLDER

    return ExtractionResult(requirement=requirement, categories=tuple(categories), raw_text=text)
