import numpy as np
import pytest

from rag_engine.exceptions import ProviderUnavailable
from rag_engine.retrieval.embedder import (
    HashingEmbeddingProvider,
    OllamaEmbeddingProvider,
    create_embedding_provider,
)
from rag_engine.retrieval.vector_index import cosine_similarity
from rag_engine.schemas import EmbeddingConfig


class DummyResponse:
    def __init__(self, payload):
        self._payload = payload

    def json(self):
        return self._payload


class TestHashingEmbeddingProvider:
    def test_dimension_and_determinism(self):
        provider = HashingEmbeddingProvider(dimension=64)
        first = provider.embed("Reset the router to factory settings")
        second = provider.embed("Reset the router to factory settings")

        assert len(first) == 64
        assert first == second

    def test_shared_vocabulary_scores_higher(self):
        provider = HashingEmbeddingProvider(dimension=256)
        query = provider.embed("battery charging problems")
        related = provider.embed("Troubleshooting battery charging and power problems")
        unrelated = provider.embed("Recipe for sourdough bread with rye flour")

        assert cosine_similarity(query, related) > cosine_similarity(query, unrelated)

    def test_stop_words_only_gives_zero_vector(self):
        provider = HashingEmbeddingProvider(dimension=16)
        assert not np.any(provider.embed("the and of"))

    def test_invalid_dimension(self):
        with pytest.raises(ValueError):
            HashingEmbeddingProvider(dimension=0)

    def test_always_ready(self):
        assert HashingEmbeddingProvider().is_ready()


class TestOllamaEmbeddingProvider:
    def test_builds_payload_and_parses_response(self):
        captured = {}

        def transport(url, headers, payload):
            captured["url"] = url
            captured["payload"] = payload
            return DummyResponse({"embedding": [0.1, 0.2, 0.3]})

        provider = OllamaEmbeddingProvider(
            model="nomic-embed-text", base_url="http://ollama:11434/", transport=transport
        )
        vec = provider.embed("hello")

        assert captured["url"] == "http://ollama:11434/api/embeddings"
        assert captured["payload"] == {"model": "nomic-embed-text", "prompt": "hello"}
        assert vec == [0.1, 0.2, 0.3]

    def test_openai_style_response(self):
        provider = OllamaEmbeddingProvider(
            base_url="http://ollama",
            transport=lambda url, headers, payload: {"data": [{"embedding": [1, 2]}]},
        )
        assert provider.embed("x") == [1.0, 2.0]

    def test_transport_error_raises_provider_unavailable(self):
        def transport(url, headers, payload):
            raise ConnectionError("refused")

        provider = OllamaEmbeddingProvider(base_url="http://ollama", transport=transport, probe=lambda url: None)
        assert provider.is_ready()

        with pytest.raises(ProviderUnavailable):
            provider.embed("x")

    def test_empty_response_raises(self):
        provider = OllamaEmbeddingProvider(base_url="http://ollama", transport=lambda *a: {})
        with pytest.raises(ProviderUnavailable):
            provider.embed("x")

    def test_readiness_probe(self):
        calls = []

        def probe(url):
            calls.append(url)
            if len(calls) == 1:
                raise ConnectionError("down")

        provider = OllamaEmbeddingProvider(base_url="http://ollama", probe=probe)
        assert provider.is_ready() is False
        assert provider.is_ready() is True
        assert provider.is_ready() is True
        assert calls == ["http://ollama/api/tags", "http://ollama/api/tags"]


def test_create_embedding_provider():
    hashing = create_embedding_provider(EmbeddingConfig(provider="hashing", dimension=32))
    assert isinstance(hashing, HashingEmbeddingProvider)
    assert hashing.dimension == 32

    ollama = create_embedding_provider(EmbeddingConfig(provider="ollama", base_url="http://box:11434"))
    assert isinstance(ollama, OllamaEmbeddingProvider)
    assert ollama.base_url == "http://box:11434/api/embeddings"

    with pytest.raises(ValueError):
        create_embedding_provider(EmbeddingConfig(provider="unknown"))
