"""
流归一化模块
将任一协议族解码出的帧统一转换为 TextFragment（增量 + 累积文本）。
"""

from loguru import logger

from accumulator import IncrementalAccumulator
from frame_decoder import ContentFrame, TerminatorFrame, UnparseableFrame


class StreamNormalizer:
    def __init__(self, decoder, accumulator=None):
        self.decoder = decoder
        self.accumulator = accumulator or IncrementalAccumulator()
        self.completed = False
        self.unparseable_count = 0

    @property
    def text(self):
        return self.accumulator.snapshot

    def feed(self, raw_chunk):
        """
        输入一段原始数据，返回本次产生的 TextFragment 列表。
        收到结束帧后，本次及之后的数据都不再产生片段。
        """
        if self.completed:
            return []
        return self._consume(self.decoder.decode(raw_chunk))

    def finish(self):
        """传输层结束：处理残留的最后一行并标记完成"""
        fragments = [] if self.completed else self._consume(self.decoder.flush())
        self.completed = True
        return fragments

    def _consume(self, frames):
        fragments = []
        for frame in frames:
            if isinstance(frame, TerminatorFrame):
                self.completed = True
                break
            if isinstance(frame, UnparseableFrame):
                self.unparseable_count += 1
                logger.debug(f"跳过无法识别的帧: {frame.raw[:120]}")
                continue
            if isinstance(frame, ContentFrame) and frame.text:
                fragments.append(self.accumulator.append(frame.text))
        return fragments
