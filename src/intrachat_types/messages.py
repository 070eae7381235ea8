from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from intrachat_types.auth import UserSummary


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    SYSTEM = "system"
    ANNOUNCEMENT = "announcement"


class RoomMeta(BaseModel):
    """Realtime-relevant shape of a chat."""
    id: str
    name: Optional[str] = None
    type: str = Field("group", description="direct, group, department, team or announcement")
    is_private: bool = False
    is_archived: bool = False
    department_id: Optional[str] = None
    team_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class MessageReplyTo(BaseModel):
    """Preview of the message being replied to."""
    id: str
    content: Optional[str] = None
    sender: Optional[UserSummary] = None

    model_config = ConfigDict(from_attributes=True)


class ChatMessage(BaseModel):
    """Persisted chat message as broadcast to room members."""
    id: str
    chat_id: str
    sender_id: str
    content: str
    type: MessageType = MessageType.TEXT
    created_at: datetime
    reply_to_id: Optional[str] = None
    sender: Optional[UserSummary] = Field(None, description="Sender display fields")
    reply_to: Optional[MessageReplyTo] = None

    model_config = ConfigDict(from_attributes=True)
