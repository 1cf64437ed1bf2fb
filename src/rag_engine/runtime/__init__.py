"""Chat runtime built on the retrieval engine."""

from .chat import ChatResponse, ChatService, build_prompt, format_context
from .conversation import ConversationContext, Message
from .llm_client import LLMClient, MockLLMClient, OllamaLLMClient

__all__ = [
    "ChatResponse",
    "ChatService",
    "build_prompt",
    "format_context",
    "ConversationContext",
    "Message",
    "LLMClient",
    "MockLLMClient",
    "OllamaLLMClient",
]
