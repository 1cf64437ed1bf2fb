"""In-memory chunk/vector index with cosine search and two-artifact persistence.

On disk an index is a JSON metadata artifact plus a raw vector artifact of
little-endian float32 values (``total_chunks * embedding_dimension`` of them,
no header). Row ``i`` of the vector artifact belongs to ``chunks[i]``.

The index does no locking of its own; the engine serializes writers and hands
readers an immutable :class:`IndexSnapshot`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np
from pydantic import ValidationError

from rag_engine.exceptions import DimensionMismatch, PersistenceFailure, StorageCorrupt
from rag_engine.schemas import Chunk, ChunkRecord, IndexMetadata, IndexStats
from rag_engine.utils.json_io import (
    read_json_safe,
    validate_json_structure,
    write_bytes_atomic,
    write_json_safe,
)

logger = logging.getLogger(__name__)

VECTOR_DTYPE = np.dtype("<f4")
METADATA_KEYS = ("chunks", "embeddingDimension", "totalChunks")


def normalize(vector: Sequence[float]) -> np.ndarray:
    """Scale ``vector`` to unit Euclidean length; a zero vector is returned unchanged."""
    values = np.asarray(vector, dtype=np.float64).reshape(-1)
    norm = float(np.linalg.norm(values))
    if norm == 0.0:
        return values.astype(np.float32)
    return (values / norm).astype(np.float32)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1]; 0 when either norm is 0 or lengths differ."""
    va = np.asarray(a, dtype=np.float64).reshape(-1)
    vb = np.asarray(b, dtype=np.float64).reshape(-1)
    if va.size == 0 or va.size != vb.size:
        return 0.0
    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / (norm_a * norm_b), -1.0, 1.0))


@dataclass(frozen=True)
class IndexSnapshot:
    """Read-only view of the index at one point in time."""

    chunks: Tuple[Chunk, ...]
    vectors: Optional[np.ndarray]
    embedded: np.ndarray
    embedding_dimension: int

    def search(self, query_vector: Sequence[float], top_k: int) -> List[Chunk]:
        """Return up to ``top_k`` embedded chunks ranked by cosine similarity.

        Ties are broken by ascending chunk id. Chunks without an embedding
        are not ranked. Fewer than ``top_k`` candidates returns all of them.

        Raises:
            DimensionMismatch: If the query length differs from the index dimension
        """
        if top_k <= 0 or self.vectors is None or not self.embedded.any():
            return []

        query = np.asarray(query_vector, dtype=np.float64).reshape(-1)
        if query.size != self.embedding_dimension:
            raise DimensionMismatch(self.embedding_dimension, int(query.size))

        positions = np.flatnonzero(self.embedded)
        rows = self.vectors[positions].astype(np.float64)
        row_norms = np.linalg.norm(rows, axis=1)
        query_norm = float(np.linalg.norm(query))

        denom = row_norms * query_norm
        dots = rows @ query
        sims = np.zeros(len(positions), dtype=np.float64)
        nonzero = denom > 0.0
        sims[nonzero] = np.clip(dots[nonzero] / denom[nonzero], -1.0, 1.0)

        # lexsort keys: last is primary
        order = np.lexsort((positions, -sims))[:top_k]
        return [self.chunks[int(positions[i])] for i in order]


class VectorIndex:
    """Ordered chunks plus a flat float32 embedding buffer.

    Invariants:
    - ``chunks[i].id == i``
    - when a buffer exists it has shape ``(len(chunks), embedding_dimension)``
      and ``chunks[i].embedding`` equals row ``i``
    - ``embedding_dimension`` is 0 until the first embedding arrives
    """

    def __init__(self, metadata_path: Path, vectors_path: Path) -> None:
        self.metadata_path = Path(metadata_path)
        self.vectors_path = Path(vectors_path)
        self._reset()

    @classmethod
    def in_directory(
        cls,
        directory: Path,
        index_file: str = "rag_index.json",
        vectors_file: str = "rag_vectors.bin",
    ) -> "VectorIndex":
        directory = Path(directory)
        return cls(directory / index_file, directory / vectors_file)

    def _reset(self) -> None:
        self._chunks: Tuple[Chunk, ...] = ()
        self._vectors: Optional[np.ndarray] = None
        self._embedded = np.zeros(0, dtype=bool)
        self._dimension = 0

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #
    @property
    def chunks(self) -> Tuple[Chunk, ...]:
        return self._chunks

    @property
    def embedding_dimension(self) -> int:
        return self._dimension

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    def __len__(self) -> int:
        return len(self._chunks)

    def is_ready(self) -> bool:
        return self.chunk_count > 0

    def snapshot(self) -> IndexSnapshot:
        return IndexSnapshot(
            chunks=self._chunks,
            vectors=self._vectors,
            embedded=self._embedded,
            embedding_dimension=self._dimension,
        )

    def stats(self) -> IndexStats:
        embedded = int(self._embedded.sum())
        return IndexStats(
            total_chunks=self.chunk_count,
            embedding_dimension=self._dimension,
            embedded_chunks=embedded,
            has_embeddings=embedded > 0,
            is_ready=self.is_ready(),
        )

    # ------------------------------------------------------------------ #
    # Mutation
    # ------------------------------------------------------------------ #
    def append(self, chunks: Sequence[Chunk]) -> List[Chunk]:
        """Append chunks, assigning ids that continue from the current size.

        Incoming ids are ignored. An all-zero embedding is stored as no
        embedding. Embeddings are validated against the index
        dimension before anything is mutated; an index without a dimension
        adopts the first incoming embedding's length.

        Returns:
            The stored chunks, carrying their assigned ids

        Raises:
            DimensionMismatch: If an embedding length disagrees with the index
        """
        if not chunks:
            return []

        start = self.chunk_count
        dimension = self._dimension
        incoming: List[Optional[np.ndarray]] = []
        for offset, chunk in enumerate(chunks):
            if chunk.embedding is None:
                incoming.append(None)
                continue
            vec = np.asarray(chunk.embedding, dtype=np.float32).reshape(-1)
            if vec.size == 0:
                raise DimensionMismatch(dimension, 0, chunk_id=start + offset)
            if dimension == 0:
                dimension = int(vec.size)
            elif vec.size != dimension:
                raise DimensionMismatch(dimension, int(vec.size), chunk_id=start + offset)
            # all-zero rows are how missing embeddings are stored on disk
            incoming.append(vec if vec.any() else None)

        stored: List[Chunk] = []
        new_rows = None
        if dimension > 0:
            new_rows = np.zeros((len(chunks), dimension), dtype=np.float32)
        for offset, (chunk, vec) in enumerate(zip(chunks, incoming)):
            embedding = None
            if vec is not None:
                new_rows[offset] = vec
                embedding = new_rows[offset].copy()
            stored.append(replace(chunk, id=start + offset, embedding=embedding))

        if new_rows is not None:
            existing = self._vectors
            if existing is None:
                existing = np.zeros((start, dimension), dtype=np.float32)
            vectors = np.vstack([existing, new_rows])
            vectors.flags.writeable = False
            self._vectors = vectors

        mask = np.array([v is not None for v in incoming], dtype=bool)
        self._embedded = np.concatenate([self._embedded, mask])
        self._dimension = dimension
        self._chunks = self._chunks + tuple(stored)
        return stored

    def reset_embeddings(self, embeddings: Sequence[Sequence[float]]) -> None:
        """Replace every chunk's embedding at once (full re-index).

        The dimension is taken from the new embeddings, so switching to a
        provider with a different output size is allowed here.

        Raises:
            ValueError: If the count differs from the number of chunks
            DimensionMismatch: If the embeddings disagree in length
        """
        if len(embeddings) != self.chunk_count:
            raise ValueError(
                f"Expected {self.chunk_count} embeddings, got {len(embeddings)}"
            )
        if not embeddings:
            return
        rows = [np.asarray(e, dtype=np.float32).reshape(-1) for e in embeddings]
        dimension = int(rows[0].size)
        for position, row in enumerate(rows):
            if row.size != dimension or dimension == 0:
                raise DimensionMismatch(dimension, int(row.size), chunk_id=position)
        vectors = np.vstack(rows).astype(np.float32)
        vectors.flags.writeable = False
        embedded = vectors.any(axis=1)
        self._vectors = vectors
        self._embedded = embedded
        self._dimension = dimension
        self._chunks = tuple(
            replace(chunk, embedding=vectors[i].copy() if embedded[i] else None)
            for i, chunk in enumerate(self._chunks)
        )

    def clear(self) -> None:
        """Drop all chunks and vectors and delete both artifacts."""
        self._reset()
        for path in (self.metadata_path, self.vectors_path):
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                raise PersistenceFailure(str(path), str(exc)) from exc

    def search(self, query_vector: Sequence[float], top_k: int) -> List[Chunk]:
        return self.snapshot().search(query_vector, top_k)

    # ------------------------------------------------------------------ #
    # Persistence
    # ------------------------------------------------------------------ #
    def persist(self) -> int:
        """Write the vector artifact, then the metadata artifact.

        Returns:
            Number of chunks written

        Raises:
            PersistenceFailure: If either artifact cannot be written
        """
        if self._vectors is not None and self.chunk_count > 0:
            ok, err = write_bytes_atomic(self.vectors_path, self._vectors.astype(VECTOR_DTYPE).tobytes())
            if not ok:
                raise PersistenceFailure(str(self.vectors_path), err or "unknown error")
        else:
            try:
                self.vectors_path.unlink(missing_ok=True)
            except OSError as exc:
                raise PersistenceFailure(str(self.vectors_path), str(exc)) from exc

        metadata = IndexMetadata(
            chunks=[
                ChunkRecord(id=c.id, content=c.content, source=c.source, chunk_index=c.chunk_index)
                for c in self._chunks
            ],
            embedding_dimension=self._dimension,
            total_chunks=self.chunk_count,
        )
        ok, err = write_json_safe(self.metadata_path, metadata.model_dump(by_alias=True))
        if not ok:
            raise PersistenceFailure(str(self.metadata_path), err or "unknown error")
        logger.debug("Persisted %d chunks to %s", self.chunk_count, self.metadata_path)
        return self.chunk_count

    def load(self) -> IndexStats:
        """Replace the in-memory state with the persisted artifacts.

        A missing metadata artifact yields an empty index. A missing or
        size-mismatched vector artifact yields chunks without embeddings, as
        does an all-zero row.

        Raises:
            StorageCorrupt: If the metadata is unparsable or declares impossible values
        """
        if not self.metadata_path.exists():
            logger.info("No index found at %s; starting empty", self.metadata_path)
            self._reset()
            return self.stats()

        metadata = self._read_metadata()
        total = metadata.total_chunks
        dimension = metadata.embedding_dimension

        vectors: Optional[np.ndarray] = None
        if dimension > 0 and total > 0:
            vectors = self._read_vectors(total, dimension)
        embedded = vectors.any(axis=1) if vectors is not None else np.zeros(total, dtype=bool)

        chunks: List[Chunk] = []
        for position, record in enumerate(metadata.chunks):
            embedding = vectors[position].copy() if embedded[position] else None
            chunks.append(
                Chunk(
                    id=record.id,
                    content=record.content,
                    source=record.source,
                    chunk_index=record.chunk_index,
                    embedding=embedding,
                )
            )

        self._chunks = tuple(chunks)
        self._vectors = vectors
        self._embedded = embedded
        self._dimension = dimension
        logger.info(
            "Loaded %d chunks (%dD, %d embedded) from %s",
            total,
            dimension,
            int(embedded.sum()),
            self.metadata_path,
        )
        return self.stats()

    def _read_metadata(self) -> IndexMetadata:
        path = str(self.metadata_path)
        data, err = read_json_safe(self.metadata_path)
        if err:
            raise StorageCorrupt(path, err)
        valid, missing = validate_json_structure(data, METADATA_KEYS)
        if not valid:
            raise StorageCorrupt(path, f"missing metadata fields: {missing}")
        try:
            metadata = IndexMetadata.model_validate(data)
        except ValidationError as exc:
            raise StorageCorrupt(path, f"invalid metadata: {exc}") from exc

        if metadata.embedding_dimension < 0:
            raise StorageCorrupt(path, f"negative embeddingDimension {metadata.embedding_dimension}")
        if metadata.total_chunks < 0:
            raise StorageCorrupt(path, f"negative totalChunks {metadata.total_chunks}")
        if metadata.total_chunks != len(metadata.chunks):
            raise StorageCorrupt(
                path,
                f"totalChunks={metadata.total_chunks} but {len(metadata.chunks)} chunk records",
            )
        for position, record in enumerate(metadata.chunks):
            if record.id != position:
                raise StorageCorrupt(path, f"chunk at position {position} has id {record.id}")
        return metadata

    def _read_vectors(self, total: int, dimension: int) -> Optional[np.ndarray]:
        if not self.vectors_path.exists():
            logger.warning("Vector artifact %s missing; loading chunks without embeddings", self.vectors_path)
            return None
        try:
            raw = self.vectors_path.read_bytes()
        except OSError as exc:
            logger.warning("Cannot read %s (%s); loading chunks without embeddings", self.vectors_path, exc)
            return None

        expected = total * dimension * VECTOR_DTYPE.itemsize
        if len(raw) != expected:
            logger.warning(
                "Vector artifact %s has %d bytes, expected %d; loading chunks without embeddings",
                self.vectors_path,
                len(raw),
                expected,
            )
            return None

        vectors = np.frombuffer(raw, dtype=VECTOR_DTYPE).reshape(total, dimension).astype(np.float32)
        vectors.flags.writeable = False
        return vectors


__all__ = ["IndexSnapshot", "VectorIndex", "cosine_similarity", "normalize"]
