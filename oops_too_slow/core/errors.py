"""
错误类型定义
回合引擎的编程错误与房间操作的可恢复错误
"""


class InvalidRound(ValueError):
    """回合序号必须从 1 开始"""

    def __init__(self, round_index: int):
        super().__init__(f"round index must be >= 1, got {round_index}")
        self.round_index = round_index


class RoomError(Exception):
    """房间操作失败（可恢复，提示用户后忽略即可）"""

    code = "room_error"
    message = "Room operation failed"

    def __init__(self, message: str = None):
        super().__init__(message or self.message)


class NotSignedIn(RoomError):
    code = "not_signed_in"
    message = "Not signed in"


class RoomNotFound(RoomError):
    code = "room_not_found"
    message = "Room not found"


class RoomFull(RoomError):
    code = "room_full"
    message = "Room full (max 5)"


class AlreadyStarted(RoomError):
    code = "already_started"
    message = "Game already started"


class NotHost(RoomError):
    code = "not_host"
    message = "Only host can start"


class RoomCreateFailed(RoomError):
    code = "create_failed"
    message = "Failed to create room. Try again."


# 远程协议用：错误码 -> 异常类
ROOM_ERRORS = {
    cls.code: cls
    for cls in (RoomError, NotSignedIn, RoomNotFound, RoomFull,
                AlreadyStarted, NotHost, RoomCreateFailed)
}


class DetectorUnavailable(RuntimeError):
    """摄像头或手部检测器无法初始化；游戏仍可用按键/点击目标继续"""
