"""Text generation clients used by the chat layer (Ollama, Mock)."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Protocol, Union

from rag_engine.exceptions import ProviderUnavailable

logger = logging.getLogger(__name__)


class LLMClient(Protocol):
    """Protocol for interchangeable generation backends."""

    def stream_generate(self, prompt: str) -> Iterator[str]:
        ...


class MockLLMClient:
    """Replays a canned response, one token per item, for tests and offline runs."""

    def __init__(self, response: Union[str, Iterable[str]] = "", delay: float = 0.0):
        self.tokens: List[str] = [response] if isinstance(response, str) else list(response)
        self.delay = delay
        self.prompts: List[str] = []

    def stream_generate(self, prompt: str) -> Iterator[str]:
        self.prompts.append(prompt)
        for token in self.tokens:
            if self.delay:
                time.sleep(self.delay)
            yield token

    def generate(self, prompt: str) -> str:
        return "".join(self.stream_generate(prompt))


class OllamaLLMClient:
    """Ollama client streaming from ``/api/generate``.

    The transport takes ``(url, payload)`` and returns an iterable of raw
    JSON lines; the default one uses ``requests`` with ``stream=True``.
    """

    def __init__(
        self,
        model: str = "llama3",
        base_url: str = "http://localhost:11434",
        timeout: int = 30,
        transport: Optional[Callable[[str, Dict[str, Any]], Iterable[Any]]] = None,
    ) -> None:
        self.model = model or "llama3"
        normalized_base = (base_url or "").rstrip("/")
        for suffix in ("/api/generate", "/api"):
            if normalized_base.endswith(suffix):
                normalized_base = normalized_base[: -len(suffix)]
                break
        self.base_url = normalized_base or "http://localhost:11434"
        self.generate_url = f"{self.base_url}/api/generate"
        self.timeout = timeout
        self.transport = transport or self._requests_transport

    def stream_generate(self, prompt: str) -> Iterator[str]:
        payload = {"model": self.model, "prompt": prompt, "stream": True}
        try:
            lines = self.transport(self.generate_url, payload)
        except Exception as exc:
            raise ProviderUnavailable("ollama", str(exc)) from exc
        for line in lines:
            data = _parse_stream_line(line)
            if data is None:
                continue
            if data.get("error"):
                raise ProviderUnavailable("ollama", str(data["error"]))
            token = data.get("response")
            if token:
                yield token
            if data.get("done"):
                return

    def generate(self, prompt: str) -> str:
        return "".join(self.stream_generate(prompt))

    def _requests_transport(self, url: str, payload: Dict[str, Any]) -> Iterable[Any]:
        import requests

        resp = requests.post(url, json=payload, timeout=self.timeout, stream=True)
        resp.raise_for_status()
        return resp.iter_lines()


def _parse_stream_line(line: Any) -> Optional[Dict[str, Any]]:
    if isinstance(line, dict):
        return line
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")
    line = (line or "").strip()
    if not line:
        return None
    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        logger.warning("Skipping malformed stream line: %.80s", line)
        return None
    return data if isinstance(data, dict) else None


__all__ = ["LLMClient", "MockLLMClient", "OllamaLLMClient"]
