"""WebSocket endpoints for real-time vesting notifications"""
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from typing import List, Set, Optional
from datetime import datetime
import asyncio
import structlog

from vestkeeper.services.notifications import EventType, VestingEvent

logger = structlog.get_logger()

router = APIRouter()


# Available channels for subscription
CHANNELS = {
    "vesting": "Schedule creation and withdrawals",
    "upkeep": "Accrual batches applied by the keeper",
}

CHANNEL_BY_EVENT = {
    EventType.SCHEDULE_CREATED: "vesting",
    EventType.WITHDRAWAL_COMPLETED: "vesting",
    EventType.UPKEEP_PERFORMED: "upkeep",
}


class ConnectionManager:
    """Manages WebSocket connections and broadcasts"""

    def __init__(self):
        self.active_connections: List[WebSocket] = []
        self.subscriptions: dict[WebSocket, Set[str]] = {}
        self._message_queue: asyncio.Queue = asyncio.Queue()
        self._broadcast_task: Optional[asyncio.Task] = None

    async def start(self):
        """Start the broadcast worker"""
        if self._broadcast_task is None:
            self._broadcast_task = asyncio.create_task(self._broadcast_worker())
            logger.info("WebSocket broadcast worker started")

    async def stop(self):
        """Stop the broadcast worker"""
        if self._broadcast_task:
            self._broadcast_task.cancel()
            self._broadcast_task = None

    async def _broadcast_worker(self):
        """Background worker to process queued broadcasts"""
        while True:
            try:
                message, channel, beneficiary = await self._message_queue.get()
                await self._do_broadcast(message, channel, beneficiary)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Broadcast worker error", error=str(e))

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)
        self.subscriptions[websocket] = set()
        logger.info("WebSocket connected", total_connections=len(self.active_connections))

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
        if websocket in self.subscriptions:
            del self.subscriptions[websocket]
        logger.info("WebSocket disconnected", total_connections=len(self.active_connections))

    def subscribe(self, websocket: WebSocket, channels: List[str], beneficiary: Optional[str] = None):
        """Subscribe to event channels, optionally narrowed to one beneficiary"""
        valid_channels = []
        for channel in channels:
            if channel in CHANNELS:
                key = f"{channel}:{beneficiary}" if beneficiary else channel
                self.subscriptions[websocket].add(key)
                valid_channels.append(channel)
        logger.info("WebSocket subscribed", channels=valid_channels, beneficiary=beneficiary)
        return valid_channels

    def unsubscribe(self, websocket: WebSocket, channels: List[str], beneficiary: Optional[str] = None):
        """Unsubscribe from event channels"""
        for channel in channels:
            key = f"{channel}:{beneficiary}" if beneficiary else channel
            self.subscriptions[websocket].discard(key)
        logger.info("WebSocket unsubscribed", channels=channels, beneficiary=beneficiary)

    async def broadcast(self, message: dict, channel: str = None, beneficiary: str = None):
        """Queue a message for broadcast"""
        await self._message_queue.put((message, channel, beneficiary))

    def matches(self, websocket: WebSocket, channel: str = None, beneficiary: str = None) -> bool:
        keys_to_match = set()
        if channel:
            keys_to_match.add(channel)
            if beneficiary:
                keys_to_match.add(f"{channel}:{beneficiary}")
        ws_subs = self.subscriptions.get(websocket, set())
        return not keys_to_match or bool(keys_to_match.intersection(ws_subs))

    async def _do_broadcast(self, message: dict, channel: str = None, beneficiary: str = None):
        """Broadcast message to subscribed connections"""
        disconnected = []
        for websocket in self.active_connections:
            if self.matches(websocket, channel, beneficiary):
                try:
                    await websocket.send_json(message)
                except Exception as e:
                    logger.warning("Failed to send to websocket", error=str(e))
                    disconnected.append(websocket)

        # Clean up disconnected sockets
        for ws in disconnected:
            self.disconnect(ws)

    async def send_personal(self, websocket: WebSocket, message: dict):
        """Send message to a specific connection"""
        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.error("Personal send failed", error=str(e))
            self.disconnect(websocket)

    def get_stats(self) -> dict:
        """Get connection statistics"""
        return {
            "active_connections": len(self.active_connections),
            "queue_size": self._message_queue.qsize(),
        }


# Global connection manager
manager = ConnectionManager()


async def broadcast_event(event: VestingEvent):
    """Notification observer that forwards engine events to WebSocket clients"""
    channel = CHANNEL_BY_EVENT[event.event_type]
    message = {
        "type": "event",
        "event_type": event.event_type.value,
        "channel": channel,
        "data": event.to_dict(),
        "timestamp": datetime.utcnow().isoformat(),
    }
    await manager.broadcast(message, channel, event.beneficiary)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for real-time updates.

    Supported message types:
    - {"type": "subscribe", "channels": ["vesting", "upkeep"], "beneficiary": "optional"}
    - {"type": "unsubscribe", "channels": ["upkeep"]}
    - {"type": "ping"}
    - {"type": "list_channels"}
    """
    await manager.connect(websocket)

    # Send welcome message
    await manager.send_personal(websocket, {
        "type": "connected",
        "available_channels": list(CHANNELS.keys()),
    })

    try:
        while True:
            data = await websocket.receive_json()
            msg_type = data.get("type")

            if msg_type == "subscribe":
                channels = data.get("channels", [])
                beneficiary = data.get("beneficiary")
                valid_channels = manager.subscribe(websocket, channels, beneficiary)
                await manager.send_personal(websocket, {
                    "type": "subscribed",
                    "channels": valid_channels,
                    "beneficiary": beneficiary,
                })

            elif msg_type == "unsubscribe":
                channels = data.get("channels", [])
                beneficiary = data.get("beneficiary")
                manager.unsubscribe(websocket, channels, beneficiary)
                await manager.send_personal(websocket, {
                    "type": "unsubscribed",
                    "channels": channels,
                    "beneficiary": beneficiary,
                })

            elif msg_type == "list_channels":
                await manager.send_personal(websocket, {
                    "type": "channels",
                    "channels": CHANNELS,
                })

            elif msg_type == "ping":
                await manager.send_personal(websocket, {"type": "pong"})

            else:
                await manager.send_personal(websocket, {
                    "type": "error",
                    "message": f"Unknown message type: {msg_type}",
                })

    except WebSocketDisconnect:
        manager.disconnect(websocket)
    except Exception as e:
        logger.error("WebSocket error", error=str(e))
        manager.disconnect(websocket)


@router.get("/ws/stats")
async def websocket_stats():
    """Get WebSocket connection statistics"""
    return manager.get_stats()


websocket_router = router
