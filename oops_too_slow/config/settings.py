"""
Oops Too Slow 配置文件
包含手势稳定参数、回合参数、房间参数、服务器与摄像头配置等
"""

from dataclasses import dataclass, field


@dataclass
class GestureConfig:
    """手势匹配配置"""

    stable_frames: int = 3      # 连续匹配多少帧才算完成
    mirror: bool = True         # 预览镜像时翻转左右手标签


@dataclass
class GameConfig:
    """回合配置"""

    default_rounds: int = 20
    min_rounds: int = 10
    max_rounds: int = 50
    rounds_step: int = 10

    # 同一按键在此窗口内重复出现视为按住不放（毫秒）
    key_repeat_window_ms: int = 600

    def clamp_rounds(self, rounds: int) -> int:
        """将回合数限制在 [min_rounds, max_rounds] 并对齐到步长"""
        rounds = max(self.min_rounds, min(self.max_rounds, int(rounds)))
        offset = (rounds - self.min_rounds) % self.rounds_step
        return rounds - offset


@dataclass
class RoomConfig:
    """多人房间配置"""

    max_players: int = 5
    code_length: int = 6
    code_alphabet: str = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"  # 去掉易混淆字符
    create_retries: int = 5
    seed_upper_bound: int = 1_000_000_000
    request_timeout: float = 5.0   # 远程请求超时（秒）


@dataclass
class ServerConfig:
    """WebSocket 房间服务器配置"""

    host: str = "127.0.0.1"
    port: int = 8765

    heartbeat_interval: int = 5000   # 心跳间隔（毫秒）

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}"


@dataclass
class CameraConfig:
    """摄像头配置"""

    device_id: int = 0
    width: int = 640
    height: int = 480
    fps: int = 30
    mirror: bool = True              # 是否镜像（自拍模式）


@dataclass
class DetectorConfig:
    """MediaPipe Hands 检测器配置"""

    max_num_hands: int = 2
    model_complexity: int = 0        # 0=lite，帧率优先
    min_detection_confidence: float = 0.6
    min_tracking_confidence: float = 0.6


@dataclass
class Config:
    """主配置类，整合所有配置"""

    gesture: GestureConfig = field(default_factory=GestureConfig)
    game: GameConfig = field(default_factory=GameConfig)
    room: RoomConfig = field(default_factory=RoomConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    camera: CameraConfig = field(default_factory=CameraConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)

    # 调试选项：打印回合事件并显示每只手的识别结果
    debug: bool = False


# 创建默认配置实例
default_config = Config()
