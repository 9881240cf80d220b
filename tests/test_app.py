import pytest
from fastapi.testclient import TestClient

from app import create_app


@pytest.fixture
def client(store):
    with TestClient(create_app(store=store)) as client:
        yield client


@pytest.fixture
def echo_client(store):
    with TestClient(create_app(store=store, echo_sender=True)) as client:
        yield client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True, "store": True}


def test_lobby_scenario_over_websockets(client, store):
    with client.websocket_connect("/ws") as a:
        assert a.receive_json() == {"type": "roomList", "rooms": []}
        a.send_json({"action": "changeUsername", "username": "A"})
        a.send_json({"action": "joinRoom", "room": "lobby"})
        assert a.receive_json() == {"type": "roomList", "rooms": ["lobby"]}
        assert a.receive_json() == {"type": "chatHistory", "messages": []}
        assert a.receive_json() == {"type": "updateUserList", "users": ["A"]}

        with client.websocket_connect("/ws") as b:
            assert b.receive_json() == {"type": "roomList", "rooms": ["lobby"]}
            b.send_json({"action": "changeUsername", "username": "B"})
            b.send_json({"action": "joinRoom", "room": "lobby"})
            assert b.receive_json() == {"type": "chatHistory", "messages": []}
            assert b.receive_json() == {"type": "updateUserList", "users": ["A", "B"]}
            assert a.receive_json() == {"type": "notification", "message": "B joined the room"}
            assert a.receive_json() == {"type": "updateUserList", "users": ["A", "B"]}

            a.send_json({"type": "chat", "message": "hi"})
            assert b.receive_json() == {"type": "chat", "username": "A", "message": "hi"}

        assert a.receive_json() == {"type": "notification", "message": "B left the room"}
        assert a.receive_json() == {"type": "updateUserList", "users": ["A"]}

    history = client.get("/rooms/lobby/history").json()
    assert [(m["username"], m["message"]) for m in history["messages"]] == [("A", "hi")]


def test_chat_echo_policy_over_websockets(echo_client):
    with echo_client.websocket_connect("/") as a:
        a.receive_json()
        a.send_json({"action": "changeUsername", "username": "A"})
        a.send_json({"action": "joinRoom", "room": "lobby"})
        for _ in range(3):
            a.receive_json()

        a.send_json({"type": "chat", "message": "hi"})
        assert a.receive_json() == {"type": "chat", "username": "A", "message": "hi"}


def test_signal_relay_over_websockets(client):
    with client.websocket_connect("/ws") as a, client.websocket_connect("/ws") as b:
        a.receive_json(), b.receive_json()
        a.send_json({"action": "joinRoom", "room": "call"})
        for _ in range(3):
            a.receive_json()
        b.send_json({"action": "joinRoom", "room": "call"})
        # the room list announced by a's join, then history and roster
        for _ in range(3):
            b.receive_json()
        a.receive_json(), a.receive_json()

        offer = '{"sdp": {"type": "offer", "sdp": "v=0"}, "to": "anyone"}'
        a.send_text(offer)
        assert b.receive_text() == offer


def test_malformed_frames_keep_the_connection(client):
    with client.websocket_connect("/ws") as a:
        a.receive_json()
        a.send_text("{definitely not json")
        assert a.receive_json() == {"type": "notification", "message": "Malformed message ignored."}
        a.send_bytes(b"\xff\xfe")
        assert a.receive_json() == {"type": "notification", "message": "Malformed message ignored."}

        a.send_json({"action": "createRoom", "room": "still-here"})
        assert a.receive_json() == {"type": "notification", "message": "Room 'still-here' created."}


def test_create_room_over_http_announces_to_clients(client):
    with client.websocket_connect("/ws") as a:
        a.receive_json()

        response = client.post("/rooms/", json={"name": "lobby"})
        assert response.status_code == 201
        assert response.json() == {"name": "lobby", "created": True}
        assert a.receive_json() == {"type": "roomList", "rooms": ["lobby"]}

    response = client.post("/rooms/", json={"name": "lobby"})
    assert response.status_code == 200
    assert response.json() == {"name": "lobby", "created": False}
    assert client.get("/rooms/").json() == {"rooms": ["lobby"]}


def test_create_room_over_http_store_down(client, store):
    store.fail("register_room", times=1)
    response = client.post("/rooms/", json={"name": "lobby"})
    assert response.status_code == 503


def test_room_details(client):
    assert client.get("/rooms/nowhere").status_code == 404

    with client.websocket_connect("/ws") as a:
        a.receive_json()
        a.send_json({"action": "changeUsername", "username": "A"})
        a.send_json({"action": "joinRoom", "room": "lobby"})
        for _ in range(3):
            a.receive_json()

        details = client.get("/rooms/lobby").json()
        assert details["name"] == "lobby"
        assert details["registered"] is True
        assert details["online_users_count"] == 1
        assert [u["display_name"] for u in details["online_users"]] == ["A"]
