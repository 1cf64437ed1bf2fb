"""Retrieval module providing chunking, embedding, vector index and reranking."""

from .chunker import chunk_text, normalize_text, validate_chunk_config
from .embedder import (
    EmbeddingProvider,
    HashingEmbeddingProvider,
    OllamaEmbeddingProvider,
    create_embedding_provider,
)
from .vector_index import IndexSnapshot, VectorIndex, cosine_similarity, normalize
from .reranker import KeywordOverlapReranker, RerankerProvider, positional_results, rerank_candidates
from .documents import load_text_documents, load_text_files

__all__ = [
    "chunk_text",
    "normalize_text",
    "validate_chunk_config",
    "EmbeddingProvider",
    "HashingEmbeddingProvider",
    "OllamaEmbeddingProvider",
    "create_embedding_provider",
    "IndexSnapshot",
    "VectorIndex",
    "cosine_similarity",
    "normalize",
    "KeywordOverlapReranker",
    "RerankerProvider",
    "positional_results",
    "rerank_candidates",
    "load_text_documents",
    "load_text_files",
]
