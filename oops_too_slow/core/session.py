"""
会话协调模块
绑定模式（单人/多人）、种子来源和回合数，并把房间状态变化转换为回合重置
"""

from typing import List, Optional
from dataclasses import dataclass
from enum import Enum

from ..config.settings import Config, default_config
from .errors import NotSignedIn, RoomError
from .room_store import STATUS_PLAYING, RoomRecord, RoomStore
from .round_controller import RoundController, RoundEvent


_UNSEEN = object()


class SessionMode(Enum):
    SOLO = "solo"
    PARTY = "party"


@dataclass
class LeaderboardRow:
    player_id: str
    name: str
    total_time_ms: int


class SessionCoordinator:
    """
    会话协调器

    多人模式下每次房间进入 playing 只重置一次回合：
    仅当观察到的 started_at 标记与上次处理的不同才触发
    """

    def __init__(
        self,
        controller: RoundController,
        store: Optional[RoomStore] = None,
        config: Optional[Config] = None
    ):
        self.controller = controller
        self.store = store
        self.config = config or default_config

        self.mode: Optional[SessionMode] = None
        self.room_code: Optional[str] = None
        self.room: Optional[RoomRecord] = None
        self.seed: Optional[int] = None
        self.total_rounds = self.config.game.default_rounds
        self.last_error: Optional[str] = None
        self.final_ms: Optional[float] = None

        self._unsubscribe = None
        self._last_started_marker = _UNSEEN

        controller.register_callback(self._on_round_event)

    # ── 单人 ──────────────────────────────────────────────

    def start_solo(self, rounds: Optional[int] = None):
        self.leave()
        self.mode = SessionMode.SOLO
        self.seed = None
        self.total_rounds = self.config.game.clamp_rounds(
            rounds if rounds is not None else self.config.game.default_rounds
        )
        self.final_ms = None
        self.last_error = None
        self.controller.start(None, self.total_rounds)
        print(f"[SESSION] 单人模式开始: {self.total_rounds} 回合", flush=True)

    # ── 多人 ──────────────────────────────────────────────

    def _require_store(self) -> RoomStore:
        if self.store is None:
            raise NotSignedIn("No room store configured")
        return self.store

    def sign_in(self, name: str) -> str:
        return self._require_store().sign_in(name)

    @property
    def player_id(self) -> Optional[str]:
        return self.store.player_id if self.store else None

    @property
    def is_host(self) -> bool:
        return bool(self.room and self.player_id and self.room.host_id == self.player_id)

    def create_party(self, rounds: Optional[int] = None, name: str = "Host") -> str:
        store = self._require_store()
        rounds = self.config.game.clamp_rounds(
            rounds if rounds is not None else self.config.game.default_rounds
        )
        code = store.create_session(rounds, name)
        self._enter_room(code)
        return code

    def join_party(self, code: str, name: str = "Player"):
        store = self._require_store()
        code = code.strip().upper()
        store.join_session(code, name)
        self._enter_room(code)

    def start_party(self):
        """仅房主可调用；真正的重置由随后的房间推送触发"""
        if self.room_code is None:
            raise RoomError("Not in a room")
        self._require_store().start_session(self.room_code)

    def _enter_room(self, code: str):
        if self._unsubscribe:
            self._unsubscribe()
        self.mode = SessionMode.PARTY
        self.room_code = code
        self.room = None
        self._last_started_marker = _UNSEEN
        self._unsubscribe = self.store.subscribe(code, self.handle_room_change)
        print(f"[SESSION] 进入房间 {code}", flush=True)

    def handle_room_change(self, record: Optional[RoomRecord]):
        """房间记录推送"""
        self.room = record
        if record is None or record.status != STATUS_PLAYING:
            return

        marker = record.started_at
        if marker == self._last_started_marker:
            return
        self._last_started_marker = marker

        self.seed = record.round_seed
        self.total_rounds = record.round_count or self.config.game.default_rounds
        self.final_ms = None
        self.last_error = None
        self.controller.start(self.seed, self.total_rounds)
        print(f"[SESSION] 房间 {record.code} 开始: seed={self.seed}, rounds={self.total_rounds}", flush=True)

    # ── 通用 ──────────────────────────────────────────────

    def restart(self):
        """本地重开：多人模式沿用同一种子，单人模式重新随机"""
        if self.mode == SessionMode.PARTY:
            self.final_ms = None
            self.last_error = None
            self.controller.start(self.seed, self.total_rounds)
        else:
            self.start_solo(self.total_rounds)

    def leave(self):
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        self.mode = None
        self.room_code = None
        self.room = None
        self.seed = None
        self._last_started_marker = _UNSEEN

    def _on_round_event(self, event: RoundEvent):
        if event.event_type != "finished":
            return

        self.final_ms = event.elapsed_ms
        if self.mode != SessionMode.PARTY or not self.room_code:
            return

        try:
            self.store.submit_result(self.room_code, event.elapsed_ms)
            self.last_error = None
        except RoomError as e:
            # 提交失败不影响本地结算
            self.last_error = str(e)
            print(f"[ERROR] 成绩提交失败: {e}", flush=True)

    def leaderboard(self) -> List[LeaderboardRow]:
        """按总用时升序排列的成绩表"""
        if not self.room:
            return []
        rows = []
        for player_id, ms in self.room.results.items():
            entry = self.room.players.get(player_id)
            rows.append(LeaderboardRow(player_id, entry.name if entry else "Player", int(ms)))
        rows.sort(key=lambda row: row.total_time_ms)
        return rows
