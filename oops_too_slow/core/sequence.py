"""
回合序列生成模块
由 (种子, 回合序号) 推导出该回合的目标和点击位置；单人模式使用真随机
"""

import random
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .errors import InvalidRound
from .rng import POSITION_MIX, TARGET_MIX, MASK32, round_stream
from .targets import (
    GESTURE_TARGETS, KEY_CHARACTERS, PointTarget, Target, TargetType, make_key_target
)

# 目标类型分界（左闭右开）
GESTURE_THRESHOLD = 0.34
KEY_THRESHOLD = 0.67

# 点击目标位置范围（视口百分比），避开右下角摄像头预览区
POINT_X_RANGE = (10.0, 70.0)
POINT_Y_RANGE = (15.0, 70.0)

Draw = Callable[[], float]


@dataclass(frozen=True)
class PointPosition:
    x: float
    y: float


@dataclass(frozen=True)
class RoundPlan:
    """某一回合的目标（点击目标附带位置）"""
    round_index: int
    target: Target
    point: Optional[PointPosition] = None


def pick_target(draw: Draw) -> Target:
    """按固定顺序消耗随机流选择目标"""
    r = draw()
    if r < GESTURE_THRESHOLD:
        return GESTURE_TARGETS[int(draw() * len(GESTURE_TARGETS))]
    if r < KEY_THRESHOLD:
        return make_key_target(KEY_CHARACTERS[int(draw() * len(KEY_CHARACTERS))])
    return PointTarget()


def pick_point(draw: Draw) -> PointPosition:
    x_lo, x_hi = POINT_X_RANGE
    y_lo, y_hi = POINT_Y_RANGE
    x = x_lo + draw() * (x_hi - x_lo)
    y = y_lo + draw() * (y_hi - y_lo)
    return PointPosition(x, y)


def _check_round(round_index: int):
    if round_index < 1:
        raise InvalidRound(round_index)


def generate_target(seed: int, round_index: int) -> Target:
    """确定性目标：相同 (seed, round_index) 必然得到相同目标"""
    _check_round(round_index)
    return pick_target(round_stream(seed, round_index, TARGET_MIX))


def generate_point(seed: int, round_index: int) -> PointPosition:
    """确定性点击位置，与目标选择使用独立的随机流"""
    _check_round(round_index)
    return pick_point(round_stream(seed, round_index, POSITION_MIX))


def generate_round(seed: int, round_index: int) -> RoundPlan:
    target = generate_target(seed, round_index)
    point = generate_point(seed, round_index) if target.type == TargetType.POINT else None
    return RoundPlan(round_index, target, point)


class SequenceGenerator:
    """
    回合计划来源
    seed 为 None 时（单人模式）使用非确定性随机源，否则按种子推导
    """

    def __init__(self, seed: Optional[int] = None, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()
        self.seed = None
        self.reseed(seed)

    def reseed(self, seed: Optional[int]):
        self.seed = None if seed is None else seed & MASK32

    @property
    def deterministic(self) -> bool:
        return self.seed is not None

    def plan(self, round_index: int) -> RoundPlan:
        if self.seed is not None:
            return generate_round(self.seed, round_index)

        _check_round(round_index)
        target = pick_target(self._rng.random)
        point = pick_point(self._rng.random) if target.type == TargetType.POINT else None
        return RoundPlan(round_index, target, point)


def point_to_pixels(point: PointPosition, width: int, height: int) -> Tuple[int, int]:
    """百分比位置转换为像素坐标"""
    return int(point.x / 100.0 * width), int(point.y / 100.0 * height)
