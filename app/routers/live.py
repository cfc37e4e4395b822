"""
Live tracking channel.

Drivers push ``update-location`` frames; admin observers send
``join-admin-room`` once and then receive every ``location-update`` and
``location-update-complete`` frame the relay fans out.
"""

import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from realtime.relay import LiveLocationRelay, Subscription
from routers.dependencies import get_relay
from schemas.live import ERROR, JOIN_ADMIN_ROOM, JOINED, UPDATE_LOCATION, LiveFrame, PositionUpdate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["live"])


class LiveConnection:
    """One WebSocket client; sends are serialized so the forwarder and the reader never interleave."""

    def __init__(self, websocket: WebSocket, relay: LiveLocationRelay):
        self.websocket = websocket
        self.relay = relay
        self.subscription: Optional[Subscription] = None
        self._forwarder: Optional[asyncio.Task] = None
        self._send_lock = asyncio.Lock()

    async def send(self, frame: LiveFrame) -> None:
        async with self._send_lock:
            await self.websocket.send_json(frame.model_dump(mode="json"))

    async def send_error(self, message: str) -> None:
        await self.send(LiveFrame(event=ERROR, data={"message": message}))

    async def join_admin_room(self) -> None:
        if self.subscription is None:
            self.subscription = self.relay.subscribe()
            await self.send(LiveFrame(event=JOINED, data={"room": "admin"}))
            self._forwarder = asyncio.create_task(self._forward(self.subscription))
        else:
            await self.send(LiveFrame(event=JOINED, data={"room": "admin"}))

    async def _forward(self, subscription: Subscription) -> None:
        try:
            async for frame in subscription:
                await self.send(frame)
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.info(f"Observer connection closed while forwarding: {e}")

    def push_location(self, data) -> None:
        update = PositionUpdate.model_validate(data)
        self.relay.publish_position(update)

    async def handle(self, raw: str) -> None:
        try:
            message = json.loads(raw)
        except ValueError:
            await self.send_error("Frames must be JSON objects with an event field")
            return
        if not isinstance(message, dict):
            await self.send_error("Frames must be JSON objects with an event field")
            return

        event = message.get("event")
        if event == JOIN_ADMIN_ROOM:
            await self.join_admin_room()
        elif event == UPDATE_LOCATION:
            try:
                self.push_location(message.get("data") or {})
            except PydanticValidationError as e:
                await self.send_error(f"Malformed location update: {e.errors()[0]['msg']}")
        else:
            await self.send_error(f"Unknown event: {event}")

    async def close(self) -> None:
        if self.subscription is not None:
            self.subscription.close()
        if self._forwarder is not None:
            self._forwarder.cancel()
            try:
                await self._forwarder
            except asyncio.CancelledError:
                pass


@router.websocket("/ws/live")
async def live_channel(websocket: WebSocket, relay: LiveLocationRelay = Depends(get_relay)):
    await websocket.accept()
    connection = LiveConnection(websocket, relay)
    try:
        while True:
            raw = await websocket.receive_text()
            await connection.handle(raw)
    except WebSocketDisconnect:
        logger.debug("Live channel client disconnected")
    finally:
        await connection.close()
