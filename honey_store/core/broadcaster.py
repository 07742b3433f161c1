"""
Live status broadcaster.

Fans out request logs, order updates, webhook outcomes and admin config
changes to every connected WebSocket observer. New observers first receive a
snapshot (service status, admin config, request log buffer); after that they
only see live events. There is no back-pressure and no replay: an observer
whose send fails is dropped.

Messages are JSON objects of the form {"event": <name>, "data": <payload>}.
"""
import json
from typing import Any, Dict, Set, Union

import structlog
from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError

from honey_store.core.models import AdminConfig, AdminConfigUpdate, RequestLog
from honey_store.core.runtime import ServiceRuntime
from honey_store.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)

SERVICE_STATUS = "service-status"
ADMIN_CONFIG = "admin-config"
REQUEST_LOGS = "request-logs"
REQUEST_LOG = "request-log"
ORDER_UPDATED = "order-updated"
PAYMENT_WEBHOOK = "payment-webhook"
UPDATE_ADMIN_CONFIG = "update-admin-config"


def _encode(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(data, list):
        return [_encode(item) for item in data]
    return data


class LiveStatusBroadcaster:
    """Push channel hub for one service process."""

    def __init__(self, runtime: ServiceRuntime):
        self.runtime = runtime
        self._connections: Set[WebSocket] = set()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> None:
        """Accept an observer, send it the snapshot, then add it to the fan-out set."""
        await websocket.accept()
        await websocket.send_json(self._message(SERVICE_STATUS, self.runtime.service_status))
        await websocket.send_json(self._message(ADMIN_CONFIG, self.runtime.admin_config))
        await websocket.send_json(
            self._message(REQUEST_LOGS, self.runtime.request_logs.snapshot())
        )
        self._connections.add(websocket)
        metrics.set_live_connections(len(self._connections))
        logger.info(
            "live_observer_connected",
            service=self.runtime.service_name,
            connections=len(self._connections),
        )

    def disconnect(self, websocket: WebSocket) -> None:
        self._connections.discard(websocket)
        metrics.set_live_connections(len(self._connections))
        logger.info(
            "live_observer_disconnected",
            service=self.runtime.service_name,
            connections=len(self._connections),
        )

    @staticmethod
    def _message(event: str, data: Any) -> Dict[str, Any]:
        return {"event": event, "data": _encode(data)}

    async def broadcast(self, event: str, data: Any) -> None:
        """Send one event to every connected observer."""
        message = self._message(event, data)
        for websocket in list(self._connections):
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.warning("live_observer_send_failed", live_event=event, error=str(e))
                self.disconnect(websocket)

    async def record_request(self, entry: RequestLog) -> None:
        self.runtime.record_request(entry)
        await self.broadcast(REQUEST_LOG, entry)

    async def update_admin_config(
        self, update: Union[AdminConfigUpdate, Dict[str, Any]]
    ) -> AdminConfig:
        config = self.runtime.update_admin_config(update)
        await self.broadcast(ADMIN_CONFIG, config)
        return config

    async def publish_service_status(self) -> None:
        await self.broadcast(SERVICE_STATUS, self.runtime.service_status)

    async def handle_message(self, message: Any) -> None:
        """Apply an inbound observer message. Unknown events are ignored."""
        if not isinstance(message, dict):
            logger.warning("live_message_ignored", reason="not_an_object")
            return
        event = message.get("event")
        if event == UPDATE_ADMIN_CONFIG:
            await self.update_admin_config(message.get("data") or {})
        else:
            logger.debug("live_message_ignored", live_event=event)

    async def serve(self, websocket: WebSocket) -> None:
        """Run one observer connection until it disconnects."""
        await self.connect(websocket)
        try:
            while True:
                try:
                    message = await websocket.receive_json()
                except (json.JSONDecodeError, UnicodeDecodeError):
                    logger.warning("live_message_invalid_json")
                    continue
                try:
                    await self.handle_message(message)
                except ValidationError as e:
                    logger.warning("live_admin_config_rejected", error=str(e))
        except WebSocketDisconnect:
            pass
        finally:
            self.disconnect(websocket)

    async def close_all(self) -> None:
        for websocket in list(self._connections):
            try:
                await websocket.close()
            except Exception as e:
                logger.debug("live_observer_close_failed", error=str(e))
            self.disconnect(websocket)
