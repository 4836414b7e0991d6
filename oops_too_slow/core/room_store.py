"""
房间存储模块
多人房间记录、房间存储接口，以及进程内的共享房间中心（原子计数、变更推送、断线清理）
"""

import copy
import random
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from typing import Callable, Dict, List, Optional, Set, Any

from ..config.settings import RoomConfig
from .errors import (
    AlreadyStarted, NotHost, NotSignedIn, RoomCreateFailed, RoomFull, RoomNotFound
)

STATUS_LOBBY = "lobby"
STATUS_PLAYING = "playing"

RoomCallback = Callable[[Optional["RoomRecord"]], None]
Unsubscribe = Callable[[], None]


def _now_ms() -> float:
    return time.time() * 1000


@dataclass
class PlayerEntry:
    name: str
    joined_at: float
    finished: bool = False
    total_time_ms: Optional[int] = None


@dataclass
class RoomRecord:
    """一个多人房间的完整记录"""
    code: str
    host_id: str
    round_count: int
    round_seed: int
    status: str = STATUS_LOBBY
    created_at: float = 0.0
    max_players: int = 5
    player_count: int = 1
    started_at: Optional[float] = None
    players: Dict[str, PlayerEntry] = field(default_factory=dict)
    results: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RoomRecord":
        data = dict(data)
        players = {
            pid: PlayerEntry(**entry)
            for pid, entry in (data.pop("players", None) or {}).items()
        }
        results = {pid: int(ms) for pid, ms in (data.pop("results", None) or {}).items()}
        return cls(players=players, results=results, **data)

    def copy(self) -> "RoomRecord":
        return copy.deepcopy(self)


class RoomStore(ABC):
    """
    房间存储接口（客户端视角）
    所有失败以 RoomError 子类抛出，调用方在边界处捕获并提示
    """

    player_id: Optional[str] = None

    @abstractmethod
    def sign_in(self, name: str) -> str:
        """匿名登录，返回玩家 ID"""

    @abstractmethod
    def create_session(self, round_count: int, name: str = "Host") -> str:
        """创建房间，返回房间码"""

    @abstractmethod
    def join_session(self, code: str, name: str = "Player") -> bool:
        """加入房间"""

    @abstractmethod
    def start_session(self, code: str):
        """房主开始游戏"""

    @abstractmethod
    def submit_result(self, code: str, elapsed_ms: float) -> int:
        """提交总用时，返回实际写入的毫秒数"""

    @abstractmethod
    def subscribe(self, code: str, callback: RoomCallback) -> Unsubscribe:
        """订阅房间变更；每次写入都推送完整记录"""

    def poll(self, timeout: float = 0.0) -> int:
        """在调用线程上派发待处理的变更通知，返回派发数量"""
        return 0

    def close(self):
        pass


def check_name(name: str) -> str:
    trimmed = (name or "").strip()
    if not trimmed:
        raise ValueError("Please enter a name")
    return trimmed


class RoomHub:
    """
    共享房间中心
    单线程访问，单个方法调用即一次原子操作；写入后向订阅者推送记录副本
    """

    def __init__(
        self,
        config: Optional[RoomConfig] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], float]] = None
    ):
        self.config = config or RoomConfig()
        self._rng = rng or random.Random()
        self._clock = clock or _now_ms

        self.rooms: Dict[str, RoomRecord] = {}
        self._signed_in: Dict[str, str] = {}
        self._subscribers: Dict[str, List[RoomCallback]] = {}
        # 断线时需要清理的房间
        self._cleanup: Dict[str, Set[str]] = {}

    # ── 身份 ──────────────────────────────────────────────

    def sign_in(self, name: str) -> str:
        trimmed = check_name(name)
        player_id = uuid.uuid4().hex
        self._signed_in[player_id] = trimmed
        return player_id

    def _require_player(self, player_id: Optional[str]) -> str:
        if not player_id or player_id not in self._signed_in:
            raise NotSignedIn()
        return player_id

    def _require_room(self, code: str) -> RoomRecord:
        room = self.rooms.get(code)
        if room is None:
            raise RoomNotFound()
        return room

    # ── 房间操作 ──────────────────────────────────────────

    def make_room_code(self) -> str:
        alphabet = self.config.code_alphabet
        return "".join(self._rng.choice(alphabet) for _ in range(self.config.code_length))

    def create_room(self, player_id: str, round_count: int, name: str = "Host") -> str:
        player_id = self._require_player(player_id)
        safe_name = (name or "").strip() or "Host"

        for _ in range(self.config.create_retries):
            code = self.make_room_code()
            if code in self.rooms:
                continue

            now = self._clock()
            self.rooms[code] = RoomRecord(
                code=code,
                host_id=player_id,
                round_count=round_count,
                round_seed=self._rng.randrange(self.config.seed_upper_bound),
                created_at=now,
                max_players=self.config.max_players,
                players={player_id: PlayerEntry(name=safe_name, joined_at=now)}
            )
            self._register_cleanup(player_id, code)
            print(f"[ROOM] 房间已创建: {code} (rounds={round_count})", flush=True)
            self._notify(code)
            return code

        raise RoomCreateFailed()

    def increment_player_count(self, code: str) -> bool:
        """原子加一；已达上限时放弃并返回 False"""
        room = self._require_room(code)
        current = room.player_count if isinstance(room.player_count, int) else 0
        if current >= room.max_players:
            return False
        room.player_count = current + 1
        return True

    def join_room(self, player_id: str, code: str, name: str = "Player") -> bool:
        player_id = self._require_player(player_id)
        safe_name = (name or "").strip() or "Player"

        room = self._require_room(code)
        if room.status != STATUS_LOBBY:
            raise AlreadyStarted()

        # 重新加入不占用名额
        if player_id in room.players:
            self._register_cleanup(player_id, code)
            return True

        if not self.increment_player_count(code):
            raise RoomFull(f"Room full (max {room.max_players})")

        room.players[player_id] = PlayerEntry(name=safe_name, joined_at=self._clock())
        self._register_cleanup(player_id, code)
        print(f"[ROOM] {safe_name} 加入房间 {code} ({room.player_count}/{room.max_players})", flush=True)
        self._notify(code)
        return True

    def start_room(self, player_id: str, code: str):
        player_id = self._require_player(player_id)
        room = self._require_room(code)
        if room.host_id != player_id:
            raise NotHost()
        if room.status != STATUS_LOBBY:
            raise AlreadyStarted("Already started")

        room.status = STATUS_PLAYING
        room.started_at = self._clock()
        print(f"[ROOM] 房间 {code} 开始游戏", flush=True)
        self._notify(code)

    def submit_result(self, player_id: str, code: str, elapsed_ms: float) -> int:
        player_id = self._require_player(player_id)
        room = self._require_room(code)

        ms = max(0, int(elapsed_ms))
        entry = room.players.get(player_id)
        if entry is not None:
            entry.finished = True
            entry.total_time_ms = ms
        room.results[player_id] = ms
        self._notify(code)
        return ms

    def get(self, code: str) -> Optional[RoomRecord]:
        room = self.rooms.get(code)
        return room.copy() if room else None

    # ── 订阅与断线 ────────────────────────────────────────

    def subscribe(self, code: str, callback: RoomCallback) -> Unsubscribe:
        """订阅后立即推送一次当前记录"""
        self._subscribers.setdefault(code, []).append(callback)
        self._deliver(callback, self.get(code))

        def unsubscribe():
            callbacks = self._subscribers.get(code, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def disconnect(self, player_id: str):
        """移除该玩家在已登记房间中的玩家条目与成绩条目"""
        for code in self._cleanup.pop(player_id, set()):
            room = self.rooms.get(code)
            if room is None:
                continue
            room.players.pop(player_id, None)
            room.results.pop(player_id, None)
            self._notify(code)
        self._signed_in.pop(player_id, None)

    def _register_cleanup(self, player_id: str, code: str):
        self._cleanup.setdefault(player_id, set()).add(code)

    def _notify(self, code: str):
        snapshot = self.get(code)
        for callback in list(self._subscribers.get(code, [])):
            self._deliver(callback, snapshot.copy() if snapshot else None)

    @staticmethod
    def _deliver(callback: RoomCallback, record: Optional[RoomRecord]):
        try:
            callback(record)
        except Exception as e:
            print(f"[WARN] 房间订阅回调异常: {e}", flush=True)


class LocalRoomStore(RoomStore):
    """直接访问进程内 RoomHub 的客户端"""

    def __init__(self, hub: RoomHub):
        self.hub = hub
        self.player_id = None

    def sign_in(self, name: str) -> str:
        self.player_id = self.hub.sign_in(name)
        return self.player_id

    def create_session(self, round_count: int, name: str = "Host") -> str:
        return self.hub.create_room(self.player_id, round_count, name)

    def join_session(self, code: str, name: str = "Player") -> bool:
        return self.hub.join_room(self.player_id, code, name)

    def start_session(self, code: str):
        self.hub.start_room(self.player_id, code)

    def submit_result(self, code: str, elapsed_ms: float) -> int:
        return self.hub.submit_result(self.player_id, code, elapsed_ms)

    def subscribe(self, code: str, callback: RoomCallback) -> Unsubscribe:
        return self.hub.subscribe(code, callback)

    def close(self):
        if self.player_id:
            self.hub.disconnect(self.player_id)
            self.player_id = None
