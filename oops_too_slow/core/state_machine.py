"""
手势稳定模块
把逐帧的“当前帧是否匹配目标”信号去抖动为一次性的完成事件
"""

from typing import List, Optional
from dataclasses import dataclass

from .detector import HandObservation
from .gesture import GestureClassifier, GestureKind
from .targets import GestureTarget, Hand, Target, TargetType


@dataclass
class HandSighting:
    """镜像校正后的单手观测结果"""
    seen_hand: Optional[Hand]
    gesture: GestureKind


def observe_hands(
    hands: List[HandObservation],
    classifier: GestureClassifier,
    mirror: bool = True
) -> List[HandSighting]:
    """对每只手分类，并按镜像设置翻转左右手标签"""
    sightings = []
    for hand in hands:
        seen = Hand.parse(hand.handedness)
        if seen is not None and mirror:
            seen = seen.mirrored()
        sightings.append(HandSighting(seen_hand=seen, gesture=classifier.classify(hand)))
    return sightings


def matches_target(target: GestureTarget, sightings: List[HandSighting]) -> bool:
    """当前帧是否满足手势目标"""
    recognized = [s for s in sightings if s.gesture != GestureKind.NONE]

    if target.both_hands:
        return len(recognized) == 2 and all(s.gesture == target.gesture for s in recognized)

    for s in recognized:
        if s.gesture != target.gesture:
            continue
        if target.required_hand is None or s.seen_hand == target.required_hand:
            return True
    return False


class StabilityGate:
    """
    手势稳定门
    连续 stable_frames 帧匹配后触发一次完成事件并清零计数；任何一帧不匹配都会清零
    """

    def __init__(
        self,
        stable_frames: int = 3,
        mirror: bool = True,
        classifier: Optional[GestureClassifier] = None
    ):
        if stable_frames < 1:
            raise ValueError("stable_frames must be >= 1")

        self.stable_frames = stable_frames
        self.mirror = mirror
        self.classifier = classifier or GestureClassifier()

        self.consecutive_matches = 0
        self.last_sightings: List[HandSighting] = []

    def update(self, target: Optional[Target], hands: List[HandObservation]) -> bool:
        """
        处理一帧

        Args:
            target: 当前目标；非手势目标时稳定门不工作
            hands: 本帧检测到的手

        Returns:
            本帧是否触发了完成事件
        """
        if target is None or target.type != TargetType.GESTURE:
            return False

        self.last_sightings = observe_hands(hands, self.classifier, self.mirror)
        return self.feed(matches_target(target, self.last_sightings))

    def feed(self, matched: bool) -> bool:
        """直接输入一帧的匹配结果"""
        if matched:
            self.consecutive_matches += 1
        else:
            self.consecutive_matches = 0

        if self.consecutive_matches >= self.stable_frames:
            self.consecutive_matches = 0
            return True

        return False

    def reset(self):
        self.consecutive_matches = 0
        self.last_sightings = []
