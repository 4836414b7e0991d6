import random
import re

import pytest

from oops_too_slow.core.errors import (
    AlreadyStarted, NotHost, NotSignedIn, RoomCreateFailed, RoomFull, RoomNotFound
)
from oops_too_slow.core.room_store import (
    STATUS_LOBBY, STATUS_PLAYING, LocalRoomStore, RoomHub, RoomRecord
)


def test_create_room_record(hub, signed_in):
    host = signed_in("Ann")
    code = host.create_session(30, "Ann")
    room = hub.get(code)

    assert re.fullmatch(r"[A-Z2-9]{6}", code)
    assert not set(code) & set("IL01O")
    assert room.host_id == host.player_id
    assert room.round_count == 30
    assert 0 <= room.round_seed < 1_000_000_000
    assert room.status == STATUS_LOBBY
    assert room.player_count == 1 and room.max_players == 5
    assert room.players[host.player_id].name == "Ann"
    assert room.results == {}


def test_room_caps_at_five_players(hub, signed_in):
    host = signed_in("Ann")
    code = host.create_session(20)
    for i in range(4):
        assert signed_in(f"guest{i}").join_session(code, f"guest{i}")

    late = signed_in("late")
    with pytest.raises(RoomFull):
        late.join_session(code, "late")
    room = hub.get(code)
    assert room.player_count == 5
    assert len(room.players) == 5
    assert late.player_id not in room.players


def test_rejoin_does_not_take_a_slot(hub, signed_in):
    host = signed_in("Ann")
    code = host.create_session(20)
    guest = signed_in("Bo")
    guest.join_session(code, "Bo")
    assert guest.join_session(code, "Bo")
    assert hub.get(code).player_count == 2


def test_increment_aborts_when_full(hub, signed_in):
    code = signed_in("Ann").create_session(20)
    hub.rooms[code].player_count = 5
    assert not hub.increment_player_count(code)
    hub.rooms[code].player_count = None
    assert hub.increment_player_count(code)
    assert hub.rooms[code].player_count == 1


def test_code_collision_retries(hub, signed_in, monkeypatch):
    host = signed_in("Ann")
    codes = iter(["AAAAAA", "AAAAAA", "BBBBBB"])
    monkeypatch.setattr(hub, "make_room_code", lambda: next(codes))
    assert host.create_session(10) == "AAAAAA"
    assert host.create_session(10) == "BBBBBB"


def test_create_gives_up_after_retries(hub, signed_in, monkeypatch):
    host = signed_in("Ann")
    monkeypatch.setattr(hub, "make_room_code", lambda: "AAAAAA")
    host.create_session(10)
    with pytest.raises(RoomCreateFailed):
        host.create_session(10)


def test_operations_require_sign_in(hub):
    store = LocalRoomStore(hub)
    with pytest.raises(NotSignedIn):
        store.create_session(10)
    with pytest.raises(NotSignedIn):
        hub.join_room("nobody", "AAAAAA")


def test_blank_name_rejected(hub):
    with pytest.raises(ValueError, match="Please enter a name"):
        LocalRoomStore(hub).sign_in("   ")


def test_blank_room_names_get_defaults(hub, signed_in):
    host = signed_in("Ann")
    code = host.create_session(10, "  ")
    guest = signed_in("Bo")
    guest.join_session(code, "")
    room = hub.get(code)
    assert room.players[host.player_id].name == "Host"
    assert room.players[guest.player_id].name == "Player"


def test_unknown_room(signed_in):
    with pytest.raises(RoomNotFound):
        signed_in("Ann").join_session("NOPE42", "Ann")


def test_start_rules(hub, signed_in):
    host = signed_in("Ann")
    guest = signed_in("Bo")
    code = host.create_session(10)
    guest.join_session(code, "Bo")

    with pytest.raises(NotHost):
        guest.start_session(code)
    host.start_session(code)
    room = hub.get(code)
    assert room.status == STATUS_PLAYING
    assert room.started_at is not None

    with pytest.raises(AlreadyStarted, match="Already started"):
        host.start_session(code)
    with pytest.raises(AlreadyStarted):
        signed_in("Cy").join_session(code, "Cy")


def test_submit_result_floors(hub, signed_in):
    host = signed_in("Ann")
    code = host.create_session(10)
    assert host.submit_result(code, 1234.9) == 1234
    assert host.submit_result(code, -3) == 0
    room = hub.get(code)
    assert room.results[host.player_id] == 0
    assert room.players[host.player_id].finished
    assert room.players[host.player_id].total_time_ms == 0


def test_subscribe_delivers_now_and_on_writes(hub, signed_in):
    host = signed_in("Ann")
    code = host.create_session(10)
    seen = []
    unsubscribe = host.subscribe(code, seen.append)
    assert len(seen) == 1 and seen[0].code == code

    signed_in("Bo").join_session(code, "Bo")
    assert len(seen) == 2 and seen[1].player_count == 2

    unsubscribe()
    host.start_session(code)
    assert len(seen) == 2


def test_subscribers_get_copies(hub, signed_in):
    host = signed_in("Ann")
    code = host.create_session(10)
    seen = []
    host.subscribe(code, seen.append)
    seen[0].players.clear()
    assert hub.get(code).players


def test_subscribe_to_missing_room_delivers_none(hub):
    seen = []
    hub.subscribe("ZZZZZZ", seen.append)
    assert seen == [None]


def test_failing_subscriber_isolated(hub, signed_in):
    host = signed_in("Ann")
    code = host.create_session(10)
    seen = []

    def broken(record):
        raise RuntimeError("boom")

    host.subscribe(code, broken)
    host.subscribe(code, seen.append)
    host.start_session(code)
    assert seen[-1].status == STATUS_PLAYING


def test_disconnect_cleans_entries_but_keeps_count(hub, signed_in):
    host = signed_in("Ann")
    code = host.create_session(10)
    guest = signed_in("Bo")
    guest.join_session(code, "Bo")
    guest.submit_result(code, 500)
    guest_id = guest.player_id

    seen = []
    host.subscribe(code, seen.append)
    guest.close()

    room = hub.get(code)
    assert guest_id not in room.players
    assert guest_id not in room.results
    assert room.player_count == 2
    assert guest_id not in seen[-1].players
    assert guest.player_id is None
    with pytest.raises(NotSignedIn):
        hub.submit_result(guest_id, code, 1)


def test_record_dict_round_trip(hub, signed_in):
    host = signed_in("Ann")
    code = host.create_session(10)
    host.submit_result(code, 42)
    room = hub.get(code)
    assert RoomRecord.from_dict(room.to_dict()) == room


def test_seed_drawn_from_injected_rng():
    hub_a = RoomHub(rng=random.Random(1))
    hub_b = RoomHub(rng=random.Random(1))
    codes = []
    for hub in (hub_a, hub_b):
        store = LocalRoomStore(hub)
        store.sign_in("Ann")
        codes.append(store.create_session(10))
    assert codes[0] == codes[1]
    assert hub_a.get(codes[0]).round_seed == hub_b.get(codes[1]).round_seed
