"""
Pydantic models for request/response validation.
"""
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from domain.enums import NotificationType, RecipientRole


class APIBase(BaseModel):
    """Shared base — allows construction by Python name or camelCase alias."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


# ── Notification Models ─────────────────────────────────────────────

class NotificationCreateRequest(APIBase):
    """Create a notification and fan it out to every channel."""
    user_id: Optional[str] = Field(
        default=None,
        alias="userId",
        max_length=64,
        description="Recipient user/admin id; omit for a role-wide broadcast",
    )
    recipient_role: RecipientRole = Field(..., alias="recipientRole")
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=5000)
    type: NotificationType
    metadata: Dict[str, Any] = Field(default_factory=dict)
    email: Optional[str] = Field(
        default=None,
        max_length=255,
        description="Also send the notification to this address",
    )


# ── Realtime Models ─────────────────────────────────────────────────

class RealtimeJoinMessage(APIBase):
    """First message a WebSocket session sends: {"event": "join", "userId", "role"}."""
    event: str = Field(..., pattern="^join$")
    user_id: str = Field(..., alias="userId", min_length=1, max_length=64)
    # sessions belong to one concrete role; "both" only exists as a broadcast target
    role: Literal["user", "admin"]
