"""
确定性随机数模块
mulberry32 计数器哈希生成器，保证不同客户端在相同种子下得到完全一致的序列
"""

from typing import Callable

MASK32 = 0xFFFFFFFF

# 每回合重新播种用的混合常数
TARGET_MIX = 2654435761      # 目标选择
POSITION_MIX = 97531         # 点击目标位置


def _imul(a: int, b: int) -> int:
    """32 位整数乘法（截断到低 32 位）"""
    return (a * b) & MASK32


class Mulberry32:
    """
    mulberry32 生成器
    状态只有一个 32 位计数器，输出 [0, 1) 区间的浮点数
    """

    def __init__(self, seed: int):
        self._state = seed & MASK32

    def next_float(self) -> float:
        self._state = (self._state + 0x6D2B79F5) & MASK32
        t = self._state

        x = _imul(t ^ (t >> 15), t | 1)
        x ^= (x + _imul(x ^ (x >> 7), x | 61)) & MASK32
        x &= MASK32

        return ((x ^ (x >> 14)) & MASK32) / 4294967296

    __call__ = next_float


def mix_seed(seed: int, round_index: int, constant: int) -> int:
    """将会话种子与回合序号混合为该回合的独立种子"""
    return ((seed & MASK32) ^ (round_index * constant)) & MASK32


def round_stream(seed: int, round_index: int, constant: int) -> Callable[[], float]:
    """返回某回合的确定性随机流"""
    return Mulberry32(mix_seed(seed, round_index, constant))
