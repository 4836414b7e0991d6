import asyncio
import json

import pytest

from oops_too_slow.core.room_store import RoomHub
from oops_too_slow.server import ClientSession, RoomServer, WebSocketMessage, make_message


@pytest.fixture
def server():
    return RoomServer(hub=RoomHub())


def request(server, session, msg_type, **data):
    return server.handle_request(session, msg_type, data)


def test_message_json_round_trip():
    message = make_message("ping", request_id=3)
    parsed = WebSocketMessage.from_json(message.to_json())
    assert parsed.type == "ping"
    assert parsed.data == {"request_id": 3}


def test_from_json_tolerates_missing_fields():
    parsed = WebSocketMessage.from_json('{"type": "ping"}')
    assert parsed.data == {}
    assert parsed.timestamp == 0.0


def test_requests_and_updates(server):
    pushed = []
    session = ClientSession(push=pushed.append)

    reply = request(server, session, "sign_in", name="Ann", request_id=1)
    assert reply.type == "response"
    assert reply.data == {"request_id": 1, "result": session.player_id}

    code = request(server, session, "create_room", round_count=20, name="Ann").data["result"]
    assert request(server, session, "subscribe", code=code).data["result"] is True
    assert len(pushed) == 1

    update = json.loads(pushed[0])
    assert update["type"] == "room_update"
    assert update["data"]["code"] == code
    assert update["data"]["room"]["host_id"] == session.player_id

    request(server, session, "start_room", code=code)
    assert json.loads(pushed[-1])["data"]["room"]["status"] == "playing"

    assert request(server, session, "submit_result", code=code, elapsed_ms=812.7).data["result"] == 812


def test_subscribe_twice_registers_once(server):
    pushed = []
    session = ClientSession(push=pushed.append)
    request(server, session, "sign_in", name="Ann")
    code = request(server, session, "create_room", round_count=10).data["result"]
    request(server, session, "subscribe", code=code)
    request(server, session, "subscribe", code=code)
    assert len(pushed) == 1

    request(server, session, "unsubscribe", code=code)
    request(server, session, "start_room", code=code)
    assert len(pushed) == 1


def test_errors_carry_codes(server):
    session = ClientSession(push=lambda text: None)
    reply = request(server, session, "create_room", round_count=10, request_id=9)
    assert reply.type == "error"
    assert reply.data["code"] == "not_signed_in"
    assert reply.data["request_id"] == 9

    request(server, session, "sign_in", name="Ann")
    assert request(server, session, "join_room", code="NOPE42").data["code"] == "room_not_found"
    assert request(server, session, "join_room").data["code"] == "bad_request"
    assert request(server, session, "teleport").data["code"] == "bad_request"
    assert request(server, session, "ping").data["result"] == "pong"


def test_disconnect_runs_cleanup(server):
    host = ClientSession(push=lambda text: None)
    guest = ClientSession(push=lambda text: None)
    request(server, host, "sign_in", name="Ann")
    request(server, guest, "sign_in", name="Bo")
    code = request(server, host, "create_room", round_count=10).data["result"]
    request(server, guest, "join_room", code=code, name="Bo")
    guest_id = guest.player_id

    server.disconnect(guest)
    room = server.hub.get(code)
    assert guest_id not in room.players
    assert room.player_count == 2


class FakeSocket:
    """按顺序产出客户端消息，记录服务器发送的内容"""

    def __init__(self, messages):
        self.messages = list(messages)
        self.sent = []

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self.messages:
            yield message

    async def send(self, text):
        self.sent.append(json.loads(text))


def test_handle_client_session(server):
    def msg(msg_type, **data):
        return json.dumps({"type": msg_type, "timestamp": 0, "data": data})

    socket = FakeSocket([
        msg("sign_in", name="Ann", request_id=1),
        "not json",
        msg("create_room", round_count=10, request_id=2),
    ])

    async def scenario():
        await server.handle_client(socket)
        await asyncio.sleep(0)

    asyncio.run(scenario())

    assert [m["type"] for m in socket.sent] == ["response", "response"]
    code = socket.sent[1]["data"]["result"]
    room = server.hub.get(code)
    # 断线后房主条目被清理，人数不回退
    assert room.players == {}
    assert room.player_count == 1
