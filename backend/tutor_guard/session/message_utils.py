"""Helpers for building chat messages and converting them for LangChain."""

import uuid
from datetime import datetime
from typing import Iterable, List, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from .state import ChatMessage, MessageFormat, MessageRole


def _message_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def make_user_message(
    content: str,
    user_id: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> ChatMessage:
    """Create canonical user message."""
    return ChatMessage(
        id=_message_id("user"),
        content=content,
        role=MessageRole.USER,
        format=MessageFormat.TEXT,
        timestamp=timestamp or datetime.utcnow(),
        user_id=user_id,
    )


def make_assistant_message(
    content: str,
    user_id: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> ChatMessage:
    """Create canonical assistant message."""
    return ChatMessage(
        id=_message_id("ai"),
        content=content,
        role=MessageRole.ASSISTANT,
        format=MessageFormat.TEXT,
        timestamp=timestamp or datetime.utcnow(),
        user_id=user_id,
    )


def to_langchain_messages(messages: Iterable[ChatMessage]) -> List[BaseMessage]:
    """
    Convert stored chat messages to LangChain message objects.

    Args:
        messages: Chat messages in conversation order

    Returns:
        List of LangChain message objects
    """
    result: List[BaseMessage] = []
    for msg in messages:
        if msg.role == MessageRole.ASSISTANT:
            result.append(AIMessage(content=msg.content))
        elif msg.role == MessageRole.SYSTEM:
            result.append(SystemMessage(content=msg.content))
        else:
            result.append(HumanMessage(content=msg.content))
    return result
