"""Ephemeral per-user session state: messages and topic salience."""

from .context import SessionContext, extract_keywords, recency_weight
from .message_utils import make_assistant_message, make_user_message, to_langchain_messages
from .state import ChatMessage, ConversationTopic, MessageFormat, MessageRole

__all__ = [
    "SessionContext",
    "extract_keywords",
    "recency_weight",
    "ChatMessage",
    "ConversationTopic",
    "MessageFormat",
    "MessageRole",
    "make_user_message",
    "make_assistant_message",
    "to_langchain_messages",
]
