"""
WebSocket 房间服务模块
把共享 RoomHub 暴露给多个游戏客户端：请求/应答 + 房间变更推送 + 断线清理
"""

import asyncio
import json
import time
from typing import Any, Callable, Dict, Optional, Set
from dataclasses import dataclass, asdict
import websockets
from websockets.exceptions import ConnectionClosed

from .config.settings import Config, default_config
from .core.errors import RoomError
from .core.room_store import RoomHub, RoomRecord


@dataclass
class WebSocketMessage:
    """WebSocket 消息结构"""
    type: str
    timestamp: float
    data: Dict[str, Any]

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)

    @classmethod
    def from_json(cls, json_str: str) -> "WebSocketMessage":
        data = json.loads(json_str)
        return cls(
            type=data.get("type", ""),
            timestamp=data.get("timestamp", 0.0),
            data=data.get("data") or {}
        )


def make_message(msg_type: str, **data) -> WebSocketMessage:
    return WebSocketMessage(type=msg_type, timestamp=time.time() * 1000, data=data)


class ClientSession:
    """单个连接的会话状态"""

    def __init__(self, push: Callable[[str], None]):
        self.push = push
        self.player_id: Optional[str] = None
        self.subscriptions: Dict[str, Callable[[], None]] = {}


class RoomServer:
    """
    房间服务器
    所有房间操作都在事件循环线程内同步执行，因此每个请求天然是原子的
    """

    def __init__(self, config: Optional[Config] = None, hub: Optional[RoomHub] = None):
        self.config = config or default_config
        self.hub = hub or RoomHub(self.config.room)

        self._sessions: Set[ClientSession] = set()
        self._running = False

    def handle_request(self, session: ClientSession, msg_type: str, data: Dict[str, Any]) -> WebSocketMessage:
        """
        处理一条请求，返回应答消息

        Args:
            session: 发起请求的连接会话
            msg_type: 请求类型
            data: 请求数据（含 request_id）
        """
        request_id = data.get("request_id")

        try:
            result = self._dispatch(session, msg_type, data)
        except RoomError as e:
            return make_message("error", request_id=request_id, code=e.code, message=str(e))
        except (ValueError, TypeError, KeyError) as e:
            return make_message("error", request_id=request_id, code="bad_request", message=str(e))

        return make_message("response", request_id=request_id, result=result)

    def _dispatch(self, session: ClientSession, msg_type: str, data: Dict[str, Any]) -> Any:
        hub = self.hub

        if msg_type == "ping":
            return "pong"

        if msg_type == "sign_in":
            session.player_id = hub.sign_in(data.get("name", ""))
            return session.player_id

        if msg_type == "create_room":
            return hub.create_room(session.player_id, int(data["round_count"]), data.get("name", "Host"))

        if msg_type == "join_room":
            return hub.join_room(session.player_id, data["code"], data.get("name", "Player"))

        if msg_type == "start_room":
            hub.start_room(session.player_id, data["code"])
            return True

        if msg_type == "submit_result":
            return hub.submit_result(session.player_id, data["code"], float(data["elapsed_ms"]))

        if msg_type == "subscribe":
            code = data["code"]
            if code not in session.subscriptions:
                session.subscriptions[code] = hub.subscribe(
                    code, lambda record, code=code: self._push_update(session, code, record)
                )
            return True

        if msg_type == "unsubscribe":
            unsubscribe = session.subscriptions.pop(data["code"], None)
            if unsubscribe:
                unsubscribe()
            return True

        raise ValueError(f"unknown message type: {msg_type}")

    @staticmethod
    def _push_update(session: ClientSession, code: str, record: Optional[RoomRecord]):
        message = make_message("room_update", code=code, room=record.to_dict() if record else None)
        session.push(message.to_json())

    def disconnect(self, session: ClientSession):
        """连接断开：取消订阅并执行断线清理"""
        for unsubscribe in session.subscriptions.values():
            unsubscribe()
        session.subscriptions.clear()

        if session.player_id:
            self.hub.disconnect(session.player_id)
            session.player_id = None

        self._sessions.discard(session)

    async def handle_client(self, websocket):
        """处理客户端连接"""
        loop = asyncio.get_running_loop()
        session = ClientSession(
            push=lambda text: loop.create_task(self._safe_send(websocket, text))
        )
        self._sessions.add(session)
        print(f"[SERVER] 客户端已连接: {id(websocket)}", flush=True)

        try:
            async for message in websocket:
                await self._handle_message(websocket, session, message)
        except ConnectionClosed:
            pass
        finally:
            self.disconnect(session)
            print(f"[SERVER] 客户端已断开: {id(websocket)}", flush=True)

    async def _handle_message(self, websocket, session: ClientSession, message: str):
        """处理客户端消息"""
        try:
            request = WebSocketMessage.from_json(message)
        except (json.JSONDecodeError, AttributeError):
            print(f"[WARN] 无效的 JSON 消息: {message}", flush=True)
            return

        reply = self.handle_request(session, request.type, request.data)
        await websocket.send(reply.to_json())

    @staticmethod
    async def _safe_send(websocket, text: str):
        try:
            await websocket.send(text)
        except ConnectionClosed:
            pass

    async def run(self, host: str = "127.0.0.1", port: int = 8765):
        """运行服务器"""
        self._running = True
        print(f"[SERVER] 房间服务器启动: ws://{host}:{port}", flush=True)

        async with websockets.serve(self.handle_client, host, port):
            while self._running:
                await asyncio.sleep(self.config.server.heartbeat_interval / 1000)
                print(f"[STATS] 房间: {len(self.hub.rooms)}, 客户端: {len(self._sessions)}", flush=True)

    def stop(self):
        self._running = False
