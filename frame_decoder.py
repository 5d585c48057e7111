"""
流式帧解码模块
将 AI 服务返回的原始字节/文本流按行切分，解析出协议帧。
支持两种协议族:
  - delta 风格（OpenAI 兼容）: data: {"choices":[{"delta":{"content":"..."}}]}，以 data: [DONE] 结束
  - content-block 风格（Anthropic）: 仅处理 type == "content_block_delta" 的事件
"""

import codecs
import json
from dataclasses import dataclass
from typing import List, Protocol, Union

from loguru import logger

from config import ProviderFamily

FIELD_MARKER = "data:"
DONE_SENTINEL = "[DONE]"
CONTENT_BLOCK_DELTA = "content_block_delta"


@dataclass(frozen=True)
class ContentFrame:
    text: str
    kind: str = "content"


@dataclass(frozen=True)
class TerminatorFrame:
    kind: str = "terminator"


@dataclass(frozen=True)
class UnparseableFrame:
    raw: str
    kind: str = "unparseable"


Frame = Union[ContentFrame, TerminatorFrame, UnparseableFrame]


class FrameDecoder(Protocol):
    family: ProviderFamily

    def decode(self, chunk) -> List[Frame]: ...

    def flush(self) -> List[Frame]: ...

    def reset(self) -> None: ...


class _LineBufferedDecoder:
    """
    按行切分的公共部分。
    一个 chunk 不一定是完整的一行，末尾不完整的部分会缓存到下一次 decode。
    """

    family = None

    def __init__(self):
        self._pending = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def decode(self, chunk):
        if isinstance(chunk, (bytes, bytearray)):
            chunk = self._utf8.decode(bytes(chunk))
        text = self._pending + chunk
        lines = text.split("\n")
        # 最后一段可能是被截断的半行
        self._pending = lines.pop()
        frames = []
        for line in lines:
            frame = self._decode_line(line)
            if frame is not None:
                frames.append(frame)
        return frames

    def flush(self):
        """传输结束时处理缓冲区中剩余的最后一行"""
        tail = self._pending + self._utf8.decode(b"", final=True)
        self._pending = ""
        if not tail.strip():
            return []
        frame = self._decode_line(tail)
        return [frame] if frame is not None else []

    def reset(self):
        """丢弃缓冲区中尚未成行的数据"""
        self._pending = ""
        self._utf8.reset()

    def _decode_line(self, line):
        line = line.strip()
        if not line.startswith(FIELD_MARKER):
            return None
        data = line[len(FIELD_MARKER):].strip()
        if not data:
            return None
        if data == DONE_SENTINEL and self.family is ProviderFamily.DELTA:
            return TerminatorFrame()
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            logger.debug(f"忽略无法解析的数据行: {data[:120]}")
            return None
        return self._decode_payload(payload, data)

    def _decode_payload(self, payload, raw):
        raise NotImplementedError


class DeltaStyleDecoder(_LineBufferedDecoder):
    family = ProviderFamily.DELTA

    def _decode_payload(self, payload, raw):
        try:
            choices = payload["choices"]
            delta = (choices[0].get("delta") or {}) if choices else {}
        except (KeyError, IndexError, TypeError, AttributeError):
            return UnparseableFrame(raw)
        content = delta.get("content") if isinstance(delta, dict) else None
        if content is not None and not isinstance(content, str):
            return UnparseableFrame(raw)
        return ContentFrame(content or "")


class ContentBlockStyleDecoder(_LineBufferedDecoder):
    family = ProviderFamily.CONTENT_BLOCK

    def _decode_payload(self, payload, raw):
        if not isinstance(payload, dict):
            return UnparseableFrame(raw)
        if payload.get("type") != CONTENT_BLOCK_DELTA:
            # message_start / ping / message_stop 等事件不产生帧
            return None
        delta = payload.get("delta")
        if not isinstance(delta, dict):
            return UnparseableFrame(raw)
        text = delta.get("text")
        if text is not None and not isinstance(text, str):
            return UnparseableFrame(raw)
        return ContentFrame(text or "")


_DECODERS = {
    ProviderFamily.DELTA: DeltaStyleDecoder,
    ProviderFamily.CONTENT_BLOCK: ContentBlockStyleDecoder,
}


def create_decoder(family) -> FrameDecoder:
    """根据协议族创建解码器，每个会话一个实例"""
    return _DECODERS[ProviderFamily(family)]()
