from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ticketdesk.websockets.hub import ChatHub

logger = logging.getLogger(__name__)

router = APIRouter()


class WebSocketConnection:
    """Очередь исходящих кадров и задача-писатель для одного сокета.

    ``send`` только кладет кадр в очередь, поэтому рассылки не ждут
    медленных клиентов и сохраняют порядок.
    """

    drain_timeout = 1.0

    def __init__(self, websocket: WebSocket) -> None:
        self.id = uuid.uuid4().hex
        self.websocket = websocket
        self._queue: asyncio.Queue = asyncio.Queue()
        self._writer: Optional[asyncio.Task] = None
        self._closed = False

    def start(self) -> None:
        self._writer = asyncio.create_task(self._pump())

    def send(self, event: str, data: Any = None) -> None:
        if self._closed:
            return
        frame = {"event": event}
        if data is not None:
            frame["data"] = data
        self._queue.put_nowait(frame)

    async def _pump(self) -> None:
        while True:
            frame = await self._queue.get()
            try:
                await self.websocket.send_json(frame)
            except Exception as exc:  # noqa: BLE001
                logger.debug("Connection %s writer stopped: %s", self.id, exc)
                self._closed = True
                return
            finally:
                self._queue.task_done()

    async def aclose(self) -> None:
        self._closed = True
        if self._writer is None:
            return
        # дописываем то, что уже в очереди, потом останавливаем писателя
        if not self._writer.done():
            try:
                await asyncio.wait_for(self._queue.join(), timeout=self.drain_timeout)
            except asyncio.TimeoutError:
                logger.debug("Connection %s closed with undelivered frames", self.id)
        self._writer.cancel()
        try:
            await self._writer
        except asyncio.CancelledError:
            pass


def _frame_text(message: dict) -> Optional[str]:
    """Текст кадра; бинарные кадры читаются как UTF-8."""
    text = message.get("text")
    if text is not None:
        return text
    raw = message.get("bytes")
    if raw is None:
        return None
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return None


def _decode_frame(raw: Optional[str]):
    """Return (event, data) or None for a frame that is not ``{"event": str, ...}``."""
    if raw is None:
        return None
    try:
        frame = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
        return None
    return frame["event"], frame.get("data")


@router.websocket("/ws/chat")
async def ticket_chat_websocket(websocket: WebSocket) -> None:
    hub: ChatHub = websocket.app.state.chat_hub
    await websocket.accept()

    connection = WebSocketConnection(websocket)
    connection.start()
    hub.connect(connection)
    try:
        while True:
            try:
                message = await asyncio.wait_for(websocket.receive(), timeout=hub.idle_timeout)
            except asyncio.TimeoutError:
                logger.info("Closing idle chat connection %s", connection.id)
                await websocket.close(code=1000)
                break
            if message["type"] == "websocket.disconnect":
                break
            decoded = _decode_frame(_frame_text(message))
            if decoded is None:
                connection.send("error", {"success": False, "message": "Malformed frame"})
                continue
            event, data = decoded
            await hub.dispatch(connection.id, event, data)
    except WebSocketDisconnect:
        pass
    except Exception:  # noqa: BLE001
        logger.exception("Ticket chat websocket error")
        try:
            await websocket.close(code=1011)
        except Exception:  # noqa: BLE001
            pass
    finally:
        hub.disconnect(connection.id)
        await connection.aclose()
