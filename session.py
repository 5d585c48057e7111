"""
生成会话编排模块
一次测试用例生成请求对应一个 GenerationSession:
解码流式响应 -> 归一化为增量片段 -> 累积文本 -> 流结束后解析为结构化结果，
并在各阶段向监听方发送事件（stream-start / stream-chunk / stream-end / error / loading）。
"""

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional, Tuple

from loguru import logger

from accumulator import IncrementalAccumulator
from ai_client import stream_completion
from config import require_api_key
from errors import Commit2TestError
from frame_decoder import create_decoder
from models import ExtractionResult
from prompt_builder import build_prompt
from stream_normalizer import StreamNormalizer
from testcase_extractor import extract_testcases


class SessionState(Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = (SessionState.DONE, SessionState.FAILED, SessionState.CANCELLED)


@dataclass(frozen=True)
class StreamStart:
    type: ClassVar[str] = "stream-start"
    branch: str
    files: Tuple[str, ...]
    commits: Tuple[str, ...]

    def to_dict(self):
        return {"type": self.type, "branch": self.branch, "files": list(self.files), "commits": list(self.commits)}


@dataclass(frozen=True)
class StreamChunk:
    """携带截至目前的完整文本，监听方应整体替换显示内容而不是追加"""

    type: ClassVar[str] = "stream-chunk"
    cumulative_text: str

    def to_dict(self):
        return {"type": self.type, "cumulativeText": self.cumulative_text}


@dataclass(frozen=True)
class StreamEnd:
    type: ClassVar[str] = "stream-end"
    branch: str
    files: Tuple[str, ...]
    commits: Tuple[str, ...]
    result: ExtractionResult

    def to_dict(self):
        return {
            "type": self.type,
            "branch": self.branch,
            "files": list(self.files),
            "commits": list(self.commits),
            "result": self.result.to_dict(),
        }


@dataclass(frozen=True)
class ErrorEvent:
    type: ClassVar[str] = "error"
    message: str

    def to_dict(self):
        return {"type": self.type, "message": self.message}


@dataclass(frozen=True)
class LoadingEvent:
    type: ClassVar[str] = "loading"
    active: bool

    def to_dict(self):
        return {"type": self.type, "active": self.active}


class GenerationSession:
    """
    状态机: IDLE -> STREAMING -> FINALIZING -> DONE
                    STREAMING/FINALIZING -> FAILED
            任意非终止状态 -> CANCELLED（取消后不再发送任何事件）
    配置在构造时一次性传入，流式过程中不再读取外部配置。
    """

    def __init__(self, config, diff_info, listener=None):
        self.config = config
        self.diff_info = diff_info
        self.family = config.provider_family
        self.accumulator = IncrementalAccumulator()
        self.normalizer = StreamNormalizer(create_decoder(self.family), self.accumulator)
        self.state = SessionState.IDLE
        self.result: Optional[ExtractionResult] = None
        self.error: Optional[str] = None
        self._listener = listener

    @property
    def text(self):
        return self.accumulator.snapshot

    def start(self):
        if self.state is not SessionState.IDLE:
            raise RuntimeError(f"会话已处于 {self.state.value} 状态，不能重复开始")
        self.state = SessionState.STREAMING
        logger.info(f"开始生成会话: branch={self.diff_info.branch}, provider={self.config.provider}")
        self._emit(LoadingEvent(True))
        self._emit(StreamStart(self.diff_info.branch, tuple(self.diff_info.files), tuple(self.diff_info.commits)))

    def feed(self, chunk):
        """处理传输层送来的一块原始数据，返回本次产生的片段"""
        if self.state is not SessionState.STREAMING:
            return []
        fragments = self.normalizer.feed(chunk)
        self._publish(fragments)
        if self.normalizer.completed:
            self._finalize()
        return fragments

    def end(self):
        """传输层结束信号"""
        if self.state is SessionState.STREAMING:
            self._publish(self.normalizer.finish())
            self._finalize()
        return self.result

    def fail(self, error):
        if self.state not in (SessionState.STREAMING, SessionState.FINALIZING):
            return
        message = str(error) or error.__class__.__name__
        self.state = SessionState.FAILED
        self.error = message
        logger.error(f"生成会话失败: {message}")
        self._emit(LoadingEvent(False))
        self._emit(ErrorEvent(message))

    def cancel(self):
        """放弃会话；缓冲区中未成行的数据直接丢弃"""
        if self.state in TERMINAL_STATES:
            return
        self.state = SessionState.CANCELLED
        self.normalizer.decoder.reset()
        logger.info("生成会话已取消")

    def run(self, chunks):
        """
        驱动整个会话直到终止状态。
        成功返回 ExtractionResult；失败或取消返回 None，错误信息见 self.error。
        """
        self.start()
        iterator = iter(chunks)
        try:
            if self.state is SessionState.STREAMING:
                for chunk in iterator:
                    self.feed(chunk)
                    # 收到结束帧或被取消后不再读取后续数据
                    if self.state is not SessionState.STREAMING:
                        break
            self.end()
        except Commit2TestError as e:
            self.fail(e)
        except Exception as e:
            logger.exception(f"生成会话出现未预期的异常: {e}")
            self.fail(f"AI 调用失败: {e}")
        finally:
            # 提前结束时关闭底层连接
            close = getattr(iterator, "close", None)
            if close is not None:
                close()
        return self.result

    def _publish(self, fragments):
        for fragment in fragments:
            self._emit(StreamChunk(fragment.cumulative))

    def _finalize(self):
        self.state = SessionState.FINALIZING
        text = self.accumulator.finalize()
        result = extract_testcases(text)
        logger.info(
            f"生成完成: 文本长度={len(text)}, 分类数={len(result.categories)}, "
            f"用例数={sum(len(c.cases) for c in result.categories)}, "
            f"跳过的无效帧={self.normalizer.unparseable_count}"
        )
        self.result = result
        self.state = SessionState.DONE
        self._emit(LoadingEvent(False))
        self._emit(
            StreamEnd(self.diff_info.branch, tuple(self.diff_info.files), tuple(self.diff_info.commits), result)
        )

    def _emit(self, event):
        if self.state is SessionState.CANCELLED or self._listener is None:
            return
        self._listener(event)


def generate_testcases(config, diff_info, listener=None, transport=stream_completion):
    """
    完整的一次生成流程: 检查密钥 -> 构建提示词 -> 流式调用 AI -> 解析。
    返回会话对象，调用方通过 session.state / session.result / session.error 获取结果。
    """
    require_api_key(config)
    prompt = build_prompt(diff_info.diff, list(diff_info.commits))
    session = GenerationSession(config, diff_info, listener)
    session.run(transport(config, prompt))
    return session
