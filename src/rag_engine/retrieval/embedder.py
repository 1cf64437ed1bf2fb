"""Embedding providers (pluggable) with offline hashing and Ollama implementations."""

from __future__ import annotations

import hashlib
import logging
import os
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from rag_engine.exceptions import ProviderUnavailable
from rag_engine.schemas import EmbeddingConfig
from rag_engine.utils.text_analysis import word_tokens

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    """Protocol for embedding providers.

    ``embed`` must be deterministic for identical input within one process.
    The returned vector need not be unit length; the engine normalizes it.
    Providers may also expose ``is_ready() -> bool``.
    """

    def embed(self, text: str) -> Sequence[float]:
        ...


class HashingEmbeddingProvider:
    """Offline feature-hashing embedder.

    Each lowercased word token is hashed into one of ``dimension`` buckets
    with a hash-derived sign, so texts sharing vocabulary land close together
    under cosine similarity. Stable across processes and platforms.
    """

    def __init__(self, dimension: int = 384, drop_stop_words: bool = True) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be positive")
        self.dimension = dimension
        self.drop_stop_words = drop_stop_words

    def is_ready(self) -> bool:
        return True

    def embed(self, text: str) -> List[float]:
        vector = [0.0] * self.dimension
        for token in word_tokens(text, drop_stop_words=self.drop_stop_words):
            digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
            value = int.from_bytes(digest, "little")
            bucket = value % self.dimension
            sign = 1.0 if (value >> 63) & 1 == 0 else -1.0
            vector[bucket] += sign
        return vector


class OllamaEmbeddingProvider:
    """Local embeddings via Ollama's ``/api/embeddings`` endpoint."""

    def __init__(
        self,
        model: str = "nomic-embed-text",
        base_url: str | None = None,
        timeout: int = 30,
        transport: Optional[Callable[[str, Dict[str, str], Dict[str, Any]], Any]] = None,
        probe: Optional[Callable[[str], Any]] = None,
    ) -> None:
        self.model = model
        host = base_url or os.getenv("OLLAMA_HOST") or "http://localhost:11434"
        self.base_url = host.rstrip("/") + "/api/embeddings"
        self.tags_url = host.rstrip("/") + "/api/tags"
        self.timeout = timeout
        self.transport = transport or self._requests_transport
        self.probe = probe or self._requests_probe
        self._ready = False

    def is_ready(self) -> bool:
        """Check once that the Ollama server answers; cache a positive result."""
        if self._ready:
            return True
        try:
            self.probe(self.tags_url)
        except Exception as exc:
            logger.warning("Ollama server not reachable at %s: %s", self.tags_url, exc)
            return False
        self._ready = True
        return True

    def embed(self, text: str) -> List[float]:
        try:
            resp = self.transport(
                self.base_url,
                {},
                {
                    "model": self.model,
                    "prompt": text,
                },
            )
        except Exception as exc:
            self._ready = False
            raise ProviderUnavailable("ollama-embeddings", str(exc)) from exc

        vec = _parse_embedding_response(resp)
        if not vec:
            raise ProviderUnavailable("ollama-embeddings", "response did not contain an embedding")
        return [float(v) for v in vec]

    def _requests_transport(self, url: str, headers, payload):
        import requests

        r = requests.post(url, headers=headers, json=payload, timeout=self.timeout)
        r.raise_for_status()
        return r

    def _requests_probe(self, url: str):
        import requests

        r = requests.get(url, timeout=self.timeout)
        r.raise_for_status()
        return r


def create_embedding_provider(config: EmbeddingConfig) -> EmbeddingProvider:
    """Create an embedding provider from configuration."""
    kind = config.provider.lower().strip()
    if kind == "hashing":
        return HashingEmbeddingProvider(dimension=config.dimension)
    if kind == "ollama":
        return OllamaEmbeddingProvider(
            model=config.model,
            base_url=config.base_url,
            timeout=config.timeout,
        )
    raise ValueError(f"Unsupported embedding provider {kind!r}. Supported providers: ['hashing', 'ollama'].")


def _parse_embedding_response(resp) -> List[float] | None:
    if hasattr(resp, "json"):
        data = resp.json()
    else:
        data = resp
    if not data:
        return None
    # Ollama returns {"embedding": [...]} or {"data":[{"embedding":...}]}
    if isinstance(data, dict) and "embedding" in data:
        return data["embedding"]
    if isinstance(data, dict) and "data" in data and isinstance(data["data"], list):
        first = data["data"][0] if data["data"] else None
        if isinstance(first, dict) and "embedding" in first:
            return first["embedding"]
    return None
