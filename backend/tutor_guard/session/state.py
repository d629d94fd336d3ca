"""Data models for ephemeral per-user conversation state."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class MessageRole(str, Enum):
    """Who authored a chat message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessageFormat(str, Enum):
    """Rendering format of a chat message."""

    TEXT = "text"
    STRUCTURED = "structured"
    MULTIMODAL = "multimodal"
    INTERACTIVE = "interactive"


class ChatMessage(BaseModel):
    """A single message in the conversation. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    role: MessageRole
    format: MessageFormat = MessageFormat.TEXT
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    user_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_user(self) -> bool:
        return self.role == MessageRole.USER


class ConversationTopic(BaseModel):
    """A keyword tracked within a session, with its salience score."""

    model_config = ConfigDict(validate_assignment=True)

    topic: str
    score: float = Field(ge=0.0, le=1.0)  # Relevance score 0.0 to 1.0
    last_mention: datetime
    mention_count: int = 1
    sample_context: str = ""  # Sample text where topic appeared
