from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from ..services.realtime import REALTIME_KEYS, hub

logger = logging.getLogger(__name__)

router = APIRouter()


async def _drain_client(websocket: WebSocket) -> None:
    # clients never send anything meaningful; reading detects the disconnect
    while True:
        await websocket.receive_text()


@router.websocket("/__realtime")
async def realtime_socket(websocket: WebSocket, key: str = ""):
    if key not in REALTIME_KEYS.all():
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    subscription = hub.subscribe(key)
    try:
        await websocket.accept()
        await websocket.send_json({"type": "subscribed", "key": key})
        reader = asyncio.create_task(_drain_client(websocket))
        try:
            while True:
                waiter = asyncio.create_task(subscription.next_event())
                done, _ = await asyncio.wait({reader, waiter}, return_when=asyncio.FIRST_COMPLETED)
                if reader in done:
                    waiter.cancel()
                    error = reader.exception()
                    if error is not None and not isinstance(error, WebSocketDisconnect):
                        raise error
                    break
                await websocket.send_json(waiter.result())
        finally:
            reader.cancel()
    except WebSocketDisconnect:
        pass
    finally:
        subscription.close()
        logger.info("realtime.unsubscribed", extra={"extra_data": {"key": key}})
