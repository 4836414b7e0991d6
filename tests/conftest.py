import random

import numpy as np
import pytest

from oops_too_slow.core.room_store import LocalRoomStore, RoomHub
from oops_too_slow.core.sequence import RoundPlan, SequenceGenerator

# 四指关节索引：(MCP, PIP, DIP, 指尖)
_FINGERS = {
    "index": (5, 6, 7, 8),
    "middle": (9, 10, 11, 12),
    "ring": (13, 14, 15, 16),
    "pinky": (17, 18, 19, 20),
}


def build_hand(index="curl", middle="curl", ring="curl", pinky="curl", thumb="tucked"):
    """
    构造 21x3 的合成关键点
    ext = 伸展（指尖最高），curl = 弯曲（指尖低于 PIP）
    """
    lm = np.zeros((21, 3))
    lm[0] = [0.5, 0.9, 0.0]

    states = {"index": index, "middle": middle, "ring": ring, "pinky": pinky}
    for i, (name, (mcp, pip, dip, tip)) in enumerate(_FINGERS.items()):
        x = 0.4 + 0.05 * i
        if states[name] == "ext":
            ys = (0.6, 0.5, 0.45, 0.4)
        else:
            ys = (0.6, 0.55, 0.6, 0.65)
        for idx, y in zip((mcp, pip, dip, tip), ys):
            lm[idx] = [x, y, 0.0]

    if thumb == "up":
        thumb_ys = (0.7, 0.55, 0.45, 0.35)
    else:
        thumb_ys = (0.7, 0.6, 0.62, 0.65)
    for idx, y in zip((1, 2, 3, 4), thumb_ys):
        lm[idx] = [0.3, y, 0.0]

    return lm


HAND_SHAPES = {
    "OPEN_PALM": dict(index="ext", middle="ext", ring="ext", pinky="ext"),
    "PEACE": dict(index="ext", middle="ext"),
    "THUMBS_UP": dict(thumb="up"),
    "FIST": dict(),
    "ROCKER": dict(index="ext", pinky="ext"),
}


@pytest.fixture
def make_hand():
    return build_hand


class FakeClock:
    """可手动推进的毫秒时钟"""

    def __init__(self, now=1000.0):
        self.now = now

    def advance(self, ms):
        self.now += ms

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def hub():
    return RoomHub(rng=random.Random(7))


@pytest.fixture
def signed_in(hub):
    """返回一个按名字登录到同一 hub 的客户端工厂"""
    def factory(name):
        store = LocalRoomStore(hub)
        store.sign_in(name)
        return store
    return factory


class FixedGenerator(SequenceGenerator):
    """每回合都给出同一个目标"""

    def __init__(self, target, point=None):
        super().__init__(seed=0)
        self.target = target
        self.point = point

    def plan(self, round_index):
        return RoundPlan(round_index, self.target, self.point)
