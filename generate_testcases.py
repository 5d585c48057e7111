"""
测试用例生成入口
读取当前分支相对基准分支的代码变更，调用 AI 流式生成测试用例，
实时输出生成内容，完成后将结构化结果写入 testcases.json，原始文本写入 testcases.md。
"""

import argparse
import json
import os
import sys

from loguru import logger

from config import GeneratorConfig
from errors import Commit2TestError
from git_service import GitService
from session import SessionState, generate_testcases

OUTPUT_JSON = "testcases.json"
OUTPUT_MARKDOWN = "testcases.md"
LOG_FILE = "testcase_generation_{time}.log"


class ConsolePrinter:
    """stream-chunk 事件携带的是累积文本，这里只打印新增部分"""

    def __init__(self, stream=None):
        # 实例化时才读取 sys.stdout
        self.stream = stream or sys.stdout
        self._printed = 0

    def __call__(self, event):
        if event.type == "stream-start":
            logger.info(f"当前分支: {event.branch}，变更文件 {len(event.files)} 个")
        elif event.type == "stream-chunk":
            self.stream.write(event.cumulative_text[self._printed:])
            self.stream.flush()
            self._printed = len(event.cumulative_text)
        elif event.type == "stream-end":
            self.stream.write("\n")
        elif event.type == "error":
            logger.error(f"生成失败: {event.message}")


def write_outputs(result, output_dir="."):
    os.makedirs(output_dir, exist_ok=True)
    json_path = os.path.join(output_dir, OUTPUT_JSON)
    markdown_path = os.path.join(output_dir, OUTPUT_MARKDOWN)
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(result.to_dict(), f, ensure_ascii=False, indent=2)
    with open(markdown_path, "w", encoding="utf-8") as f:
        f.write(result.raw_text)
    logger.info(f"测试用例已写入: {json_path}, {markdown_path}")
    return json_path, markdown_path


def setup_logging():
    """日志同时写入按天轮转的文件"""
    logger.add(LOG_FILE, rotation="1 day", level="INFO", encoding="utf-8")


def main(argv=None):
    parser = argparse.ArgumentParser(description="根据 Git 提交生成测试用例")
    parser.add_argument("--base", default="main", help="基准分支名称（默认: main）")
    parser.add_argument("--repo", default=".", help="Git 仓库目录")
    parser.add_argument("--output-dir", default=".", help="结果输出目录")
    args = parser.parse_args(argv)
    setup_logging()

    try:
        config = GeneratorConfig.from_env()
    except Commit2TestError as e:
        logger.error(str(e))
        return 1
    if not config.api_key:
        logger.error("AI_API_KEY 环境变量未设置，无法调用API！")
        return 1

    try:
        diff_info = GitService(args.repo).get_git_diff_info(args.base)
    except Commit2TestError as e:
        logger.error(f"获取代码变更失败: {e}")
        return 1
    if not diff_info.diff.strip():
        logger.error(f"当前分支 \"{diff_info.branch}\" 相对于基准分支没有代码变更，流程终止。")
        return 1

    logger.info("AI 正在生成测试用例...")
    session = generate_testcases(config, diff_info, listener=ConsolePrinter())
    if session.state is not SessionState.DONE:
        return 1

    result = session.result
    case_count = sum(len(category.cases) for category in result.categories)
    logger.info(f"需求: {result.requirement}")
    logger.info(f"共解析出 {len(result.categories)} 个分类、{case_count} 个用例")
    write_outputs(result, args.output_dir)
    return 0


if __name__ == "__main__":
    sys.exit(main())
