from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class WsEnvelope(BaseModel):
    """Envelope for WebSocket messages."""
    type: str = Field(..., description="Message type (e.g., 'notification').")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Message payload.")
    at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Timestamp (UTC).")
    channel: Optional[str] = Field(default=None, description="Topic the message was published on.")


class NotificationPayload(BaseModel):
    """Body of a 'notification' envelope."""
    title: str = Field(..., description="Short notification title (e.g., 'Low Stock Alert').")
    message: str = Field(..., description="Human-readable notification text.")
    data: Dict[str, Any] = Field(default_factory=dict, description="Structured context (ids, quantities).")
    roles: List[str] = Field(default_factory=list, description="Target roles; empty means all users.")
    email_subject: Optional[str] = Field(default=None, description="Subject of the e-mail rendering, if any.")
