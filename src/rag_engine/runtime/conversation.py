"""Per-channel rolling conversation history."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

DEFAULT_CHANNEL = "default"


@dataclass
class Message:
    role: str  # "user" or "assistant"
    content: str
    timestamp: float = field(default_factory=time.time)


class ConversationContext:
    """Keeps the last ``max_messages`` turns for each channel.

    A ``None`` channel id maps to the ``"default"`` channel.
    """

    def __init__(self, max_messages: int = 20) -> None:
        self.max_messages = max_messages
        self._conversations: Dict[str, List[Message]] = {}
        self._lock = threading.Lock()

    def add_user_message(self, channel_id: Optional[str], content: str) -> None:
        self._add(channel_id, Message("user", content))

    def add_ai_message(self, channel_id: Optional[str], content: str) -> None:
        self._add(channel_id, Message("assistant", content))

    def _add(self, channel_id: Optional[str], message: Message) -> None:
        key = channel_id or DEFAULT_CHANNEL
        with self._lock:
            messages = self._conversations.setdefault(key, [])
            messages.append(message)
            if len(messages) > self.max_messages:
                del messages[: len(messages) - self.max_messages]

    def recent_messages(self, channel_id: Optional[str], count: int) -> List[Message]:
        if count <= 0:
            return []
        with self._lock:
            messages = self._conversations.get(channel_id or DEFAULT_CHANNEL, [])
            return list(messages[-count:])

    def format_recent(self, channel_id: Optional[str], count: int) -> str:
        """Render the last ``count`` messages as ``role: content`` lines."""
        return "\n".join(f"{m.role}: {m.content}" for m in self.recent_messages(channel_id, count))

    def clear(self, channel_id: Optional[str] = None) -> None:
        with self._lock:
            self._conversations.pop(channel_id or DEFAULT_CHANNEL, None)

    def channels(self) -> List[str]:
        with self._lock:
            return sorted(self._conversations)
