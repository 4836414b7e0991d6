"""
目标定义模块
手势 / 按键 / 点击三类目标，以及固定顺序的手势目标表
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .gesture import GestureKind


class TargetType(Enum):
    GESTURE = "GESTURE"
    KEY = "KEY"
    POINT = "POINT"


class Hand(Enum):
    """镜像校正后看到的手"""
    LEFT = "Left"
    RIGHT = "Right"

    @classmethod
    def parse(cls, label: Optional[str]) -> Optional["Hand"]:
        if label is None:
            return None
        for hand in cls:
            if hand.value.lower() == str(label).lower():
                return hand
        return None

    def mirrored(self) -> "Hand":
        return Hand.RIGHT if self is Hand.LEFT else Hand.LEFT


@dataclass(frozen=True)
class GestureTarget:
    gesture: GestureKind
    display: str
    label: str
    required_hand: Optional[Hand] = None
    both_hands: bool = False

    type = TargetType.GESTURE

    def __post_init__(self):
        if self.required_hand is not None and self.both_hands:
            raise ValueError("required_hand and both_hands are mutually exclusive")


@dataclass(frozen=True)
class KeyTarget:
    key: str
    display: str
    label: str

    type = TargetType.KEY

    def __post_init__(self):
        if len(self.key) != 1:
            raise ValueError(f"key target must be a single character, got {self.key!r}")

    def matches(self, key: str) -> bool:
        """大小写不敏感的单字符比较"""
        return str(key).lower() == self.key.lower()


@dataclass(frozen=True)
class PointTarget:
    display: str = "🎯"
    label: str = "CLICK THE TARGET"

    type = TargetType.POINT


Target = Union[GestureTarget, KeyTarget, PointTarget]


# 顺序即确定性生成的索引空间，所有客户端必须一致
GESTURE_TARGETS = (
    GestureTarget(GestureKind.OPEN_PALM, "🤚", "LEFT PALM", required_hand=Hand.LEFT),
    GestureTarget(GestureKind.OPEN_PALM, "✋", "RIGHT PALM", required_hand=Hand.RIGHT),

    GestureTarget(GestureKind.FIST, "✊", "LEFT FIST", required_hand=Hand.LEFT),
    GestureTarget(GestureKind.FIST, "✊", "RIGHT FIST", required_hand=Hand.RIGHT),

    GestureTarget(GestureKind.PEACE, "✌️", "LEFT PEACE", required_hand=Hand.LEFT),
    GestureTarget(GestureKind.PEACE, "✌️", "RIGHT PEACE", required_hand=Hand.RIGHT),

    GestureTarget(GestureKind.THUMBS_UP, "👍", "LEFT THUMBS UP", required_hand=Hand.LEFT),
    GestureTarget(GestureKind.THUMBS_UP, "👍", "RIGHT THUMBS UP", required_hand=Hand.RIGHT),

    GestureTarget(GestureKind.ROCKER, "🤘", "ROCK ON"),

    GestureTarget(GestureKind.ROCKER, "🤘🤘", "BOTH HAND ROCK ON", both_hands=True),
    GestureTarget(GestureKind.FIST, "✊✊", "BOTH HAND FIST", both_hands=True),
    GestureTarget(GestureKind.PEACE, "✌️✌️", "BOTH HAND PEACE", both_hands=True),
)

KEY_CHARACTERS = (
    "abcdefghijklmnopqrstuvwxyz"
    "0123456789"
    "`-=[]\\;',./"
    " "
)


def make_key_target(key: str) -> KeyTarget:
    if key == " ":
        return KeyTarget(key=key, display="␣", label="SPACE")
    return KeyTarget(key=key, display=key.upper(), label="PRESS KEY")
