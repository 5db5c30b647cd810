import asyncio

import pytest
from starlette.websockets import WebSocketDisconnect

from cleanops.services.realtime import ALL_CHANNEL, AssistFeedHub, hub


class FakeSocket:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)


def test_broadcast_reaches_all_and_customer_channels():
    hub = AssistFeedHub()
    everyone, metalex, harbour = FakeSocket(), FakeSocket(), FakeSocket()

    async def scenario():
        await hub.connect(everyone, ALL_CHANNEL)
        await hub.connect(metalex, "Metalex")
        await hub.connect(harbour, "Harbour Offices")
        await hub.broadcast("UPDATE", {"id": "r1"}, customer_name="Metalex")

    asyncio.run(scenario())
    assert everyone.sent == [{"event": "UPDATE", "table": "bathroom_assist_requests", "data": {"id": "r1"}}]
    assert len(metalex.sent) == 1
    assert harbour.sent == []


def test_dead_socket_is_dropped():
    hub = AssistFeedHub()
    dead, alive = FakeSocket(fail=True), FakeSocket()

    async def scenario():
        await hub.connect(dead)
        await hub.connect(alive)
        await hub.broadcast("INSERT", {"id": "r2"})

    asyncio.run(scenario())
    assert len(alive.sent) == 1
    assert hub.subscriber_count() == 1


def test_disconnect_removes_empty_channel():
    hub = AssistFeedHub()
    ws = FakeSocket()

    async def scenario():
        await hub.connect(ws, "Metalex")
        await hub.disconnect(ws, "Metalex")

    asyncio.run(scenario())
    assert hub.subscriber_count() == 0


def test_publish_without_subscribers_is_noop():
    AssistFeedHub().publish("INSERT", {"id": "r3"})


def test_feed_rejects_missing_token(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/assist/ws"):
            pass
    assert exc.value.code == 4401


def test_feed_rejects_bad_token(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/assist/ws?token=garbage"):
            pass
    assert exc.value.code == 4401


def test_feed_answers_ping(client, cleaner, cleaner_headers):
    token = cleaner_headers["Authorization"].split()[1]
    with client.websocket_connect(f"/assist/ws?token={token}&customer_name=Metalex") as ws:
        ws.send_text("ping")
        assert ws.receive_text() == "pong"


def test_feed_unregisters_socket_after_server_error(client, cleaner, cleaner_headers):
    token = cleaner_headers["Authorization"].split()[1]
    before = hub.subscriber_count()
    with pytest.raises(Exception):
        with client.websocket_connect(f"/assist/ws?token={token}") as ws:
            ws.send_text("ping")
            assert ws.receive_text() == "pong"
            during = hub.subscriber_count()
            # a binary frame makes receive_text fail on the server
            ws.send_bytes(b"\x00")
            ws.receive_text()
    assert during == before + 1
    assert hub.subscriber_count() == before
