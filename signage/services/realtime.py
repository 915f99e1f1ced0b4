import asyncio
import json
from datetime import datetime, timezone
from typing import Any

from fastapi import WebSocket

PLAYLIST_UPDATE = "playlist:update"
SETTINGS_UPDATE = "settings:update"
GROUPS_UPDATE = "groups:update"

REASON_CAMPAIGN_TRANSITION = "campaign-transition"
REASON_EXPIRED_CLEANUP = "expired-campaign-cleanup"


class RealtimeHub:
    """Best-effort fanout to every connected player; players filter by groupId."""

    def __init__(self) -> None:
        self._clients: set[WebSocket] = set()
        self._lock = asyncio.Lock()
        self._revision = 0

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._clients.add(websocket)
        await websocket.send_text(
            json.dumps(
                {
                    "type": "hello",
                    "revision": self._revision,
                    "ts": datetime.now(timezone.utc).isoformat(),
                }
            )
        )

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._clients.discard(websocket)

    async def publish(self, event_type: str, payload: dict[str, Any] | None = None) -> int:
        self._revision += 1
        message = json.dumps(
            {
                "type": event_type,
                "revision": self._revision,
                "payload": payload or {},
                "ts": datetime.now(timezone.utc).isoformat(),
            }
        )
        async with self._lock:
            clients = list(self._clients)

        stale: list[WebSocket] = []
        for client in clients:
            try:
                await client.send_text(message)
            except Exception:
                stale.append(client)

        if stale:
            async with self._lock:
                for client in stale:
                    self._clients.discard(client)
        return self._revision

    async def publish_playlist_update(self, group_id: int, reason: str | None = None) -> int:
        payload: dict[str, Any] = {"groupId": group_id}
        if reason:
            payload["reason"] = reason
        return await self.publish(PLAYLIST_UPDATE, payload)

    async def publish_settings_update(self, group_id: int, settings: dict[str, Any] | None = None) -> int:
        return await self.publish(SETTINGS_UPDATE, {"groupId": group_id, **(settings or {})})

    async def publish_groups_update(self, group_id: int | None = None) -> int:
        return await self.publish(GROUPS_UPDATE, {"groupId": group_id})

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def client_count(self) -> int:
        return len(self._clients)


hub = RealtimeHub()
