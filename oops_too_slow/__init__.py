"""
Oops Too Slow - 手势 / 按键 / 点击反应速度小游戏
"""

__version__ = "0.1.0"
