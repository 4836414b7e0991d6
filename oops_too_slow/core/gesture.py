"""
手势识别模块
基于手部关键点的纵向位置关系进行规则分类
"""

import numpy as np
from typing import Dict, Sequence, Union
from enum import Enum

from .detector import HandObservation, LandmarkIndex, FINGER_JOINTS


class GestureKind(Enum):
    """手势类型枚举"""
    NONE = "none"               # 未识别
    OPEN_PALM = "OPEN_PALM"     # 张开手掌
    FIST = "FIST"               # 握拳
    PEACE = "PEACE"             # 剪刀手/V手势
    THUMBS_UP = "THUMBS_UP"     # 竖大拇指
    ROCKER = "ROCKER"           # 摇滚手势（食指+小指）


LandmarkInput = Union[HandObservation, np.ndarray, Sequence[Sequence[float]]]


def _as_array(hand: LandmarkInput) -> np.ndarray:
    if isinstance(hand, HandObservation):
        return hand.landmarks
    return np.asarray(hand, dtype=float)


class GestureClassifier:
    """
    手势分类器
    纯函数式：只比较归一化 y 坐标（y 越小位置越高），不保存任何帧间状态

    分类优先级（先命中者生效）：
    1. 四指全部伸展 -> OPEN_PALM
    2. 食指中指伸展，无名指小指未伸展 -> PEACE
    3. 拇指竖起且高于手腕，四指全部弯曲 -> THUMBS_UP
    4. 无手指伸展且拇指未竖起 -> FIST
    5. 食指小指伸展，中指无名指弯曲 -> ROCKER
    """

    def classify(self, hand: LandmarkInput) -> GestureKind:
        lm = _as_array(hand)
        if lm.ndim != 2 or lm.shape[0] < 21:
            return GestureKind.NONE

        extended = self.finger_extended(lm)
        curled = self.finger_curled(lm)
        extended_count = sum(extended.values())
        thumb_up = self.thumb_up(lm)
        thumb_above_wrist = lm[LandmarkIndex.THUMB_TIP, 1] < lm[LandmarkIndex.WRIST, 1]

        if extended_count == 4:
            return GestureKind.OPEN_PALM

        if (extended["index"] and extended["middle"]
                and not extended["ring"] and not extended["pinky"]):
            return GestureKind.PEACE

        if thumb_up and thumb_above_wrist and all(curled.values()):
            return GestureKind.THUMBS_UP

        if extended_count == 0 and not thumb_up:
            return GestureKind.FIST

        if (extended["index"] and extended["pinky"]
                and not extended["middle"] and not extended["ring"]
                and curled["middle"] and curled["ring"]):
            return GestureKind.ROCKER

        return GestureKind.NONE

    @staticmethod
    def finger_extended(lm: np.ndarray) -> Dict[str, bool]:
        """指尖高于 PIP，PIP 高于 MCP"""
        return {
            name: bool(lm[tip, 1] < lm[pip, 1] < lm[mcp, 1])
            for name, (mcp, pip, tip) in FINGER_JOINTS.items()
        }

    @staticmethod
    def finger_curled(lm: np.ndarray) -> Dict[str, bool]:
        """指尖低于 PIP"""
        return {
            name: bool(lm[tip, 1] > lm[pip, 1])
            for name, (mcp, pip, tip) in FINGER_JOINTS.items()
        }

    @staticmethod
    def thumb_up(lm: np.ndarray) -> bool:
        return bool(
            lm[LandmarkIndex.THUMB_TIP, 1]
            < lm[LandmarkIndex.THUMB_IP, 1]
            < lm[LandmarkIndex.THUMB_MCP, 1]
        )


_default_classifier = GestureClassifier()


def classify_gesture(hand: LandmarkInput) -> GestureKind:
    """使用默认分类器对单手关键点分类"""
    return _default_classifier.classify(hand)
