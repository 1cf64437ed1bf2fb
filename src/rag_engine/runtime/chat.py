"""Retrieval-augmented chat: context lookup, prompt assembly and bounded generation."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from rag_engine.engine import RetrievalEngine, to_engine_error
from rag_engine.exceptions import ProviderUnavailable
from rag_engine.schemas import Chunk, EngineError, EngineErrorSource, RetrievalSettings

from .conversation import ConversationContext
from .llm_client import LLMClient

logger = logging.getLogger(__name__)

CONTEXT_TOP_K = 3
TRUNCATION_NOTICE = "\n\n[Response truncated due to length]"
TIMEOUT_MESSAGE = "Response generation timed out. Please try again with a shorter prompt."


@dataclass
class ChatResponse:
    text: str
    chunks: List[Chunk] = field(default_factory=list)
    timed_out: bool = False
    truncated: bool = False
    error: Optional[EngineError] = None


def format_context(chunks: List[Chunk]) -> str:
    """Render retrieved chunks as ``[source] content`` blocks separated by blank lines."""
    return "\n\n".join(f"[{chunk.source}] {chunk.content}" for chunk in chunks)


def build_prompt(message: str, context: str, history: str) -> str:
    prompt = f"Previous conversation:\n{history}\n\nUser: {message}"
    if context:
        prompt = f"Context from documents:\n{context}\n\n{prompt}"
    return prompt


class ChatService:
    """Answers a user message with document context and conversation history.

    Generation runs on a worker thread and is abandoned after
    ``generation_timeout_s``; the response is capped at ``max_response_chars``.
    A turn is added to the conversation only when generation completes.
    """

    def __init__(
        self,
        engine: RetrievalEngine,
        llm_client: LLMClient,
        conversation: Optional[ConversationContext] = None,
        settings: Optional[RetrievalSettings] = None,
    ) -> None:
        self.engine = engine
        self.llm_client = llm_client
        self.settings = settings or engine.settings
        self.conversation = conversation or ConversationContext(self.settings.max_history_messages)

    def retrieve_context(self, message: str) -> List[Chunk]:
        result = self.engine.query(message, top_k=CONTEXT_TOP_K)
        if result.error:
            logger.warning("Context retrieval failed: %s", result.error.message)
        return result.chunks

    def process_message(
        self,
        message: str,
        channel_id: Optional[str] = None,
        use_rag: bool = True,
    ) -> ChatResponse:
        chunks: List[Chunk] = []
        if use_rag:
            chunks = self.retrieve_context(message)
            history = self.conversation.format_recent(channel_id, self.settings.history_messages)
            prompt = build_prompt(message, format_context(chunks), history)
        else:
            prompt = message
        logger.debug("Generating response with %d context chunks", len(chunks))

        response = self._generate(prompt)
        response.chunks = chunks
        if not response.timed_out and response.error is None:
            self.conversation.add_user_message(channel_id, message)
            self.conversation.add_ai_message(channel_id, response.text)
        return response

    def _generate(self, prompt: str) -> ChatResponse:
        limit = self.settings.max_response_chars
        stop = threading.Event()
        state: Dict[str, Any] = {"parts": [], "length": 0, "truncated": False, "error": None}

        def worker():
            try:
                for token in self.llm_client.stream_generate(prompt):
                    if stop.is_set():
                        return
                    if state["length"] + len(token) > limit:
                        logger.warning("Response too long, truncating at %d chars", state["length"])
                        state["truncated"] = True
                        return
                    state["parts"].append(token)
                    state["length"] += len(token)
            except Exception as e:
                state["error"] = e

        thread = threading.Thread(target=worker, name="rag-chat-generation", daemon=True)
        thread.start()
        thread.join(timeout=self.settings.generation_timeout_s)

        if thread.is_alive():
            stop.set()
            logger.warning("Response generation timed out after %.1fs", self.settings.generation_timeout_s)
            return ChatResponse(text=TIMEOUT_MESSAGE, timed_out=True)

        if state["error"] is not None:
            exc = state["error"]
            if not isinstance(exc, ProviderUnavailable):
                exc = ProviderUnavailable(self.llm_client.__class__.__name__, str(exc))
            logger.error("Generation failed: %s", exc)
            return ChatResponse(
                text=f"Error: {exc.message}",
                error=to_engine_error(exc, EngineErrorSource.GENERATION),
            )

        text = "".join(state["parts"])
        if state["truncated"]:
            text += TRUNCATION_NOTICE
        return ChatResponse(text=text, truncated=state["truncated"])
