"""
远程房间存储模块
通过 WebSocket 连接房间服务器；后台线程接收消息，变更通知由 poll() 在游戏线程上派发
"""

import itertools
import json
import queue
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from websockets.exceptions import ConnectionClosed
from websockets.sync.client import connect

from .errors import ROOM_ERRORS, RoomError
from .room_store import RoomCallback, RoomRecord, RoomStore, Unsubscribe


class WebSocketRoomStore(RoomStore):
    """
    远程房间存储客户端
    同一时刻只有一个请求在途；应答与推送分别进入两个队列
    """

    def __init__(self, url: str, timeout: float = 5.0, connect_fn: Optional[Callable] = None):
        self.url = url
        self.timeout = timeout
        self.player_id = None

        self._ws = (connect_fn or connect)(url)
        self._responses: queue.Queue = queue.Queue()
        self._updates: queue.Queue = queue.Queue()
        self._handlers: Dict[str, List[RoomCallback]] = {}
        self._request_lock = threading.Lock()
        self._request_ids = itertools.count(1)
        self._closed = False

        self._reader = threading.Thread(target=self._read_loop, daemon=True)
        self._reader.start()

    # ── 接收 ──────────────────────────────────────────────

    def _read_loop(self):
        try:
            for raw in self._ws:
                self._dispatch(raw)
        except ConnectionClosed:
            pass
        finally:
            self._closed = True
            self._responses.put(None)

    def _dispatch(self, raw: str):
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            print(f"[WARN] 无效的服务器消息: {raw}", flush=True)
            return

        msg_type = message.get("type")
        data = message.get("data") or {}

        if msg_type in ("response", "error"):
            self._responses.put(message)
        elif msg_type == "room_update":
            room = data.get("room")
            self._updates.put((data.get("code"), RoomRecord.from_dict(room) if room else None))

    # ── 请求 ──────────────────────────────────────────────

    def _request(self, msg_type: str, **data) -> Any:
        with self._request_lock:
            if self._closed:
                raise RoomError("Connection to room server lost")

            request_id = next(self._request_ids)
            data["request_id"] = request_id
            try:
                self._ws.send(json.dumps({
                    "type": msg_type,
                    "timestamp": time.time() * 1000,
                    "data": data
                }))
            except (ConnectionClosed, OSError) as e:
                self._closed = True
                raise RoomError("Connection to room server lost") from e

            deadline = time.monotonic() + self.timeout
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise RoomError(f"Room server did not answer '{msg_type}'")
                try:
                    reply = self._responses.get(timeout=remaining)
                except queue.Empty:
                    continue
                if reply is None:
                    raise RoomError("Connection to room server lost")

                reply_data = reply.get("data") or {}
                if reply_data.get("request_id") != request_id:
                    continue  # 超时请求的迟到应答

                if reply["type"] == "error":
                    error_cls = ROOM_ERRORS.get(reply_data.get("code"), RoomError)
                    raise error_cls(reply_data.get("message"))
                return reply_data.get("result")

    def sign_in(self, name: str) -> str:
        self.player_id = self._request("sign_in", name=name)
        return self.player_id

    def create_session(self, round_count: int, name: str = "Host") -> str:
        return self._request("create_room", round_count=round_count, name=name)

    def join_session(self, code: str, name: str = "Player") -> bool:
        return self._request("join_room", code=code, name=name)

    def start_session(self, code: str):
        self._request("start_room", code=code)

    def submit_result(self, code: str, elapsed_ms: float) -> int:
        return self._request("submit_result", code=code, elapsed_ms=elapsed_ms)

    def subscribe(self, code: str, callback: RoomCallback) -> Unsubscribe:
        handlers = self._handlers.setdefault(code, [])
        if not handlers:
            # 请求成功后才登记回调，失败时下次订阅会重新发送
            self._request("subscribe", code=code)
        handlers.append(callback)

        def unsubscribe():
            if callback in handlers:
                handlers.remove(callback)
            if not handlers and not self._closed:
                self._request("unsubscribe", code=code)

        return unsubscribe

    def poll(self, timeout: float = 0.0) -> int:
        """派发已收到的房间变更；timeout > 0 时最多等待第一条通知这么久"""
        count = 0
        block = timeout > 0
        while True:
            try:
                code, record = self._updates.get(block=block, timeout=timeout if block else None)
            except queue.Empty:
                return count
            block = False

            for callback in list(self._handlers.get(code, [])):
                try:
                    callback(record)
                except Exception as e:
                    print(f"[WARN] 房间订阅回调异常: {e}", flush=True)
            count += 1

    def close(self):
        self._closed = True
        self._ws.close()
