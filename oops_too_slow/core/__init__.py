"""
Oops Too Slow 核心模块
包含目标生成、手势识别、稳定门、回合控制、计时与会话协调
"""

from .gesture import GestureClassifier, GestureKind
from .sequence import SequenceGenerator, generate_round
from .state_machine import StabilityGate
from .timing import TimingAccumulator
from .round_controller import RoundController
from .session import SessionCoordinator

__all__ = [
    "GestureClassifier",
    "GestureKind",
    "SequenceGenerator",
    "generate_round",
    "StabilityGate",
    "TimingAccumulator",
    "RoundController",
    "SessionCoordinator"
]
