from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from typing import Dict, Optional, Set
import asyncio
import json
import logging

from cipherdocs.core.security import extract_token_from_header, principal_from_token
from cipherdocs.domains.registry.entities import normalize_principal
from cipherdocs.domains.registry.events import RegistryEvent
from cipherdocs.domains.registry.schemas import EventResponse

logger = logging.getLogger(__name__)

router = APIRouter()


class ConnectionManager:
    def __init__(self):
        # Хранилище активных соединений: {principal: {websocket}}
        self.active_connections: Dict[str, Set[WebSocket]] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks: Set[asyncio.Task] = set()

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    async def connect(self, websocket: WebSocket, principal: str):
        """Подключение участника к ленте событий"""
        await websocket.accept()
        self.active_connections.setdefault(principal, set()).add(websocket)
        logger.info(f"WebSocket accepted for {principal}")

        await websocket.send_text(json.dumps({
            "type": "connected",
            "data": {"principal": principal}
        }))

    def disconnect(self, websocket: WebSocket, principal: str):
        """Отключение участника"""
        connections = self.active_connections.get(principal)
        if connections is not None:
            connections.discard(websocket)
            if not connections:
                del self.active_connections[principal]

        logger.info(f"{principal} disconnected from event feed")

    async def send_to_principal(self, principal: str, message: dict):
        """Рассылка сообщения всем соединениям участника"""
        message_json = json.dumps(message)
        disconnected = []

        for websocket in list(self.active_connections.get(principal, ())):
            try:
                await websocket.send_text(message_json)
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.info(f"Dropping connection of {principal}: {e}")
                disconnected.append(websocket)

        # Удаляем отключенные соединения
        for websocket in disconnected:
            self.disconnect(websocket, principal)

    async def broadcast_event(self, event: RegistryEvent):
        """Доставка события всем подключенным участникам из его аудитории"""
        message = {
            "type": "event",
            "data": EventResponse.from_event(event).model_dump(mode="json")
        }
        for principal in event.audience:
            if principal in self.active_connections:
                await self.send_to_principal(principal, message)

    def on_event(self, event: RegistryEvent) -> None:
        """Слушатель реестра: вызывается под блокировкой реестра, только планирует отправку"""
        if self._loop is None or self._loop.is_closed():
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            task = self._loop.create_task(self.broadcast_event(event))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            task.add_done_callback(self._report_failure)
        else:
            future = asyncio.run_coroutine_threadsafe(self.broadcast_event(event), self._loop)
            future.add_done_callback(self._report_failure)

    @staticmethod
    def _report_failure(future) -> None:
        """Ошибка фоновой рассылки попадает в лог, а не теряется"""
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(f"Event broadcast failed: {exc!r}", exc_info=exc)


@router.websocket("/ws/events")
async def events_websocket(websocket: WebSocket, token: Optional[str] = None):
    """WebSocket лента событий реестра для участника"""
    token = token or extract_token_from_header(websocket.headers.get("authorization", ""))
    principal = principal_from_token(token) if token else None
    if principal:
        principal = normalize_principal(principal)

    if not principal:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    manager: ConnectionManager = websocket.app.state.connections
    await manager.connect(websocket, principal)

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_text(json.dumps({"type": "error", "data": "invalid json"}))
                continue

            if isinstance(message, dict) and message.get("type") == "ping":
                # Ответ на ping для поддержания соединения
                await websocket.send_text(json.dumps({"type": "pong"}))

    except WebSocketDisconnect:
        manager.disconnect(websocket, principal)
