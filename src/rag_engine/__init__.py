"""RAG engine package root.

The public API surface is the RetrievalEngine facade, the ChatService built
on it, and the schema types exposed in ``rag_engine.schemas``.
"""

__version__ = "0.1.0"

from rag_engine.engine import RetrievalEngine  # noqa: F401
from rag_engine.runtime.chat import ChatResponse, ChatService  # noqa: F401
from rag_engine.schemas import *  # noqa: F401,F403
from rag_engine.schemas import __all__ as SCHEMA_EXPORTS

__all__ = ["__version__", "RetrievalEngine", "ChatService", "ChatResponse"] + SCHEMA_EXPORTS
