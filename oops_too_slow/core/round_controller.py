"""
回合控制模块
持有回合序号与当前目标，处理按键 / 点击 / 手势输入并驱动回合切换与计时
"""

import re
from typing import Callable, List, Optional
from dataclasses import dataclass
from enum import Enum

from .detector import HandObservation
from .sequence import PointPosition, RoundPlan, SequenceGenerator
from .state_machine import StabilityGate
from .targets import Target, TargetType
from .timing import TimingAccumulator


class RoundPhase(Enum):
    """回合状态"""
    IDLE = "idle"
    ACTIVE = "active"
    COMPLETED = "completed"


EXCLUDED_KEYS = {"Meta", "Control", "Alt", "Shift", "Escape", "CapsLock", "Tab"}
_FUNCTION_KEY = re.compile(r"^F\d{1,2}$")


def is_allowed_key(key: str) -> bool:
    """修饰键和功能键一律忽略"""
    if not key or key in EXCLUDED_KEYS:
        return False
    return not _FUNCTION_KEY.match(key)


@dataclass
class RoundState:
    round_index: int
    total_rounds: int
    target: Target
    point: Optional[PointPosition] = None
    finished: bool = False


@dataclass
class RoundEvent:
    """回合事件"""
    event_type: str              # "reset" | "advance" | "finished"
    round_index: int
    total_rounds: int
    elapsed_ms: float
    target: Optional[Target] = None


class RoundController:
    """
    回合状态机：IDLE -> ACTIVE(回合, 目标) -> COMPLETED

    计时从第 1 回合被完成的那一刻开始，之后每次完成只做分段累计，
    最后一回合完成时停止计时并发出 finished 事件
    """

    def __init__(
        self,
        generator: Optional[SequenceGenerator] = None,
        timing: Optional[TimingAccumulator] = None,
        gate: Optional[StabilityGate] = None
    ):
        self.generator = generator or SequenceGenerator()
        self.timing = timing or TimingAccumulator()
        self.gate = gate or StabilityGate()

        self.phase = RoundPhase.IDLE
        self.state: Optional[RoundState] = None

        self._callbacks: List[Callable[[RoundEvent], None]] = []

    def register_callback(self, callback: Callable[[RoundEvent], None]):
        """注册回合事件回调"""
        self._callbacks.append(callback)

    def _emit_event(self, event: RoundEvent):
        for callback in self._callbacks:
            try:
                callback(event)
            except Exception as e:
                print(f"[WARN] 回合事件回调异常: {e}", flush=True)

    @property
    def target(self) -> Optional[Target]:
        return self.state.target if self.state else None

    @property
    def seed(self) -> Optional[int]:
        return self.generator.seed

    def start(self, seed: Optional[int], total_rounds: int) -> RoundState:
        """
        开始新的一局（任意状态下都可调用，等价于重置）

        Args:
            seed: 共享种子；None 表示单人模式的非确定性生成
            total_rounds: 总回合数
        """
        if total_rounds < 1:
            raise ValueError(f"total_rounds must be >= 1, got {total_rounds}")

        self.generator.reseed(seed)
        self.timing.reset()
        self.gate.reset()

        plan = self.generator.plan(1)
        self.state = RoundState(
            round_index=1,
            total_rounds=total_rounds,
            target=plan.target,
            point=plan.point
        )
        self.phase = RoundPhase.ACTIVE

        self._emit_event(RoundEvent("reset", 1, total_rounds, 0.0, plan.target))
        return self.state

    reset = start

    def on_key_down(self, key: str, repeat: bool = False) -> bool:
        """按键输入；按住不放产生的重复事件不计"""
        if self.phase != RoundPhase.ACTIVE or repeat:
            return False
        if not is_allowed_key(key):
            return False

        target = self.state.target
        if target.type != TargetType.KEY or not target.matches(key):
            return False

        self.on_candidate_satisfied()
        return True

    def on_pointer_click(self) -> bool:
        """点击目标被点中"""
        if self.phase != RoundPhase.ACTIVE or self.state.target.type != TargetType.POINT:
            return False

        self.on_candidate_satisfied()
        return True

    def on_frame(self, hands: List[HandObservation]) -> bool:
        """逐帧手势分析回调"""
        if self.phase != RoundPhase.ACTIVE:
            return False

        if self.gate.update(self.state.target, hands):
            self.on_candidate_satisfied()
            return True
        return False

    def on_candidate_satisfied(self) -> Optional[RoundEvent]:
        """当前目标已满足：累计本回合用时，进入下一回合或结束"""
        if self.phase != RoundPhase.ACTIVE:
            return None

        if not self.timing.started:
            self.timing.start()
        else:
            self.timing.split_and_continue()

        state = self.state

        if state.round_index >= state.total_rounds:
            final_ms = self.timing.stop()
            state.finished = True
            self.phase = RoundPhase.COMPLETED

            event = RoundEvent("finished", state.round_index, state.total_rounds, final_ms)
            self._emit_event(event)
            return event

        plan: RoundPlan = self.generator.plan(state.round_index + 1)
        state.round_index = plan.round_index
        state.target = plan.target
        state.point = plan.point
        self.gate.reset()

        event = RoundEvent(
            "advance", state.round_index, state.total_rounds,
            self.timing.elapsed_now(), plan.target
        )
        self._emit_event(event)
        return event

    def elapsed_now(self) -> float:
        return self.timing.elapsed_now()
