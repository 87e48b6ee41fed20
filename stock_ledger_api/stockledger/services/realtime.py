from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from starlette.websockets import WebSocket, WebSocketState

from stockledger.schemas.realtime import NotificationPayload, WsEnvelope
from .notifications import Audience, EmailRendering

logger = logging.getLogger(__name__)


class BroadcastManager:
    """
    Simple in-process pub-sub manager for WebSocket topics.

    Topics:
      - notifications:all
      - notifications:role:{role}

    Also serves as the default NotificationDispatcher: a notification is
    published on the "all" topic or on each target role's topic.
    """

    def __init__(self) -> None:
        self._topics: Dict[str, Set[WebSocket]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._global_lock = asyncio.Lock()

    def _topic_lock(self, topic: str) -> asyncio.Lock:
        if topic not in self._locks:
            self._locks[topic] = asyncio.Lock()
        return self._locks[topic]

    # PUBLIC_INTERFACE
    def all_topic(self) -> str:
        """Return the topic every connected user receives."""
        return "notifications:all"

    # PUBLIC_INTERFACE
    def role_topic(self, role: str) -> str:
        """Return the topic for users holding ``role``."""
        return f"notifications:role:{role}"

    def topics_for(self, role: Optional[str]) -> List[str]:
        topics = [self.all_topic()]
        if role:
            topics.append(self.role_topic(role))
        return topics

    async def _ensure_topic(self, topic: str) -> None:
        async with self._global_lock:
            if topic not in self._topics:
                self._topics[topic] = set()

    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, ()))

    # PUBLIC_INTERFACE
    async def connect(self, websocket: WebSocket, role: Optional[str] = None) -> None:
        """Add an accepted websocket to the "all" topic and its role topic."""
        for topic in self.topics_for(role):
            await self._ensure_topic(topic)
            async with self._topic_lock(topic):
                self._topics[topic].add(websocket)
                logger.info("WebSocket connected to topic=%s; subscribers=%d", topic, len(self._topics[topic]))

    # PUBLIC_INTERFACE
    async def disconnect(self, websocket: WebSocket, role: Optional[str] = None) -> None:
        """Remove websocket from its topics."""
        for topic in self.topics_for(role):
            if topic not in self._topics:
                continue
            async with self._topic_lock(topic):
                self._topics[topic].discard(websocket)
                logger.info("WebSocket disconnected from topic=%s; subscribers=%d", topic, len(self._topics[topic]))

    # PUBLIC_INTERFACE
    async def broadcast(self, topic: str, message: dict, exclude: Optional[WebSocket] = None) -> None:
        """
        Broadcast a dict message to all subscribers in the topic.
        """
        await self._ensure_topic(topic)
        async with self._topic_lock(topic):
            to_drop: list[WebSocket] = []
            for ws in list(self._topics[topic]):
                if exclude is not None and ws is exclude:
                    continue
                try:
                    if ws.application_state == WebSocketState.DISCONNECTED or ws.client_state == WebSocketState.DISCONNECTED:
                        to_drop.append(ws)
                        continue
                    await ws.send_json(message)
                except Exception:
                    logger.exception("Failed to send message to websocket; scheduling drop")
                    to_drop.append(ws)
            for ws in to_drop:
                self._topics[topic].discard(ws)

    # PUBLIC_INTERFACE
    async def notify(
        self,
        audience: Audience,
        title: str,
        message: str,
        data: Dict[str, Any],
        email: Optional[EmailRendering] = None,
    ) -> None:
        """Publish a notification envelope to the audience's topics."""
        payload = NotificationPayload(
            title=title,
            message=message,
            data=data,
            roles=list(audience.roles),
            email_subject=email.subject if email else None,
        )
        topics = [self.all_topic()] if audience.is_everyone else [self.role_topic(r) for r in audience.roles]
        for topic in topics:
            env = WsEnvelope(type="notification", payload=payload.model_dump(), channel=topic)
            await self.broadcast(topic, env.model_dump(mode="json"))


# Singleton instance
broadcast_manager = BroadcastManager()
