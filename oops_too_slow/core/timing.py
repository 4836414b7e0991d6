"""
计时模块
跨回合累计用时，支持开始 / 分段 / 停止，不依赖渲染节奏
"""

import time
from typing import Callable, Optional


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class TimingAccumulator:
    """
    累计计时器

    running 为 False 时 accumulated_ms 即总用时；
    running 为 True 时总用时 = accumulated_ms + (now - run_start)
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or _monotonic_ms
        self.accumulated_ms = 0.0
        self.run_start: Optional[float] = None
        self.running = False
        self.started = False   # 本局是否已开始过计时

    def start(self):
        if self.running:
            return
        if not self.started:
            self.accumulated_ms = 0.0
            self.started = True
        self.run_start = self._clock()
        self.running = True

    def split_and_continue(self):
        """回合切换：把当前片段并入累计值并从现在重新计时"""
        if not self.running:
            return
        now = self._clock()
        self.accumulated_ms += max(0.0, now - self.run_start)
        self.run_start = now

    def stop(self) -> float:
        if self.running:
            self.accumulated_ms += max(0.0, self._clock() - self.run_start)
            self.run_start = None
            self.running = False
        return self.accumulated_ms

    def elapsed_now(self) -> float:
        """只读；供显示刷新回调任意频率调用"""
        if not self.running:
            return self.accumulated_ms
        return self.accumulated_ms + max(0.0, self._clock() - self.run_start)

    def reset(self):
        self.accumulated_ms = 0.0
        self.run_start = None
        self.running = False
        self.started = False


def format_elapsed(ms: float) -> str:
    """格式化为 m:ss.mmm（向下取整，不为负）"""
    total = max(0, int(ms))
    seconds, millis = divmod(total, 1000)
    minutes, seconds = divmod(seconds, 60)
    return f"{minutes}:{seconds:02d}.{millis:03d}"
