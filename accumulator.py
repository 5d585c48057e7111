"""
增量文本累积模块
一个生成会话独占一个累积缓冲区，每次追加返回一个不可变快照。
"""

import threading

from models import TextFragment


class IncrementalAccumulator:
    def __init__(self):
        self._text = ""
        self._finalized = False
        # 同一会话理论上只有一个写入方，加锁保证宿主多线程投递时也逐个写入
        self._lock = threading.Lock()

    @property
    def snapshot(self):
        return self._text

    @property
    def finalized(self):
        return self._finalized

    def append(self, delta):
        with self._lock:
            if self._finalized:
                raise RuntimeError("累积缓冲区已结束，不能继续追加")
            self._text += delta
            return TextFragment(delta=delta, cumulative=self._text)

    def finalize(self):
        with self._lock:
            self._finalized = True
            return self._text
