"""Unit tests for WebSocket event fan-out"""
import pytest

from vestkeeper.api.websocket import ConnectionManager, broadcast_event, manager
from vestkeeper.services.notifications import EventType, VestingEvent


class FakeWebSocket:
    def __init__(self):
        self.sent = []

    async def accept(self):
        pass

    async def send_json(self, message):
        self.sent.append(message)


class TestConnectionManager:
    """Tests for channel and beneficiary filtering"""

    @pytest.mark.asyncio
    async def test_channel_and_beneficiary_filters(self):
        cm = ConnectionManager()
        everything, alice_only, upkeep_only = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()
        for ws in (everything, alice_only, upkeep_only):
            await cm.connect(ws)

        cm.subscribe(everything, ["vesting", "upkeep"])
        cm.subscribe(alice_only, ["vesting"], beneficiary="alice")
        cm.subscribe(upkeep_only, ["upkeep", "unknown"])

        await cm._do_broadcast({"n": 1}, "vesting", "alice")
        await cm._do_broadcast({"n": 2}, "vesting", "bob")
        await cm._do_broadcast({"n": 3}, "upkeep", None)

        assert [m["n"] for m in everything.sent] == [1, 2, 3]
        assert [m["n"] for m in alice_only.sent] == [1]
        assert [m["n"] for m in upkeep_only.sent] == [3]

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        cm = ConnectionManager()
        ws = FakeWebSocket()
        await cm.connect(ws)
        cm.subscribe(ws, ["vesting"])
        cm.unsubscribe(ws, ["vesting"])
        assert cm.matches(ws, "vesting", "alice") is False

    @pytest.mark.asyncio
    async def test_broadcast_event_queues_message(self):
        before = manager.get_stats()["queue_size"]
        await broadcast_event(
            VestingEvent(
                event_type=EventType.UPKEEP_PERFORMED,
                timestamp=100,
                amount=20,
            )
        )
        message, channel, beneficiary = manager._message_queue.get_nowait()
        assert manager.get_stats()["queue_size"] == before
        assert channel == "upkeep"
        assert beneficiary is None
        assert message["event_type"] == "upkeep_performed"
        assert message["data"]["amount"] == 20
