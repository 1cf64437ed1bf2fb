"""Retrieval engine facade: ingest, query, reindex and clear over one index.

The engine owns the ready/not-ready state machine and the single-writer
discipline around :class:`~rag_engine.retrieval.vector_index.VectorIndex`.
Public operations never raise; failures come back as result records carrying
an :class:`~rag_engine.schemas.EngineError`.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence, Tuple, Union

from .config_loader import load_settings
from .exceptions import (
    DimensionMismatch,
    InvalidChunkConfig,
    PersistenceFailure,
    ProviderUnavailable,
    RagEngineError,
    StorageCorrupt,
)
from .paths import index_dir, resolve_state_root
from .retrieval.chunker import chunk_text, validate_chunk_config
from .retrieval.embedder import EmbeddingProvider, create_embedding_provider
from .retrieval.reranker import KeywordOverlapReranker, RerankerProvider, rerank_candidates
from .retrieval.vector_index import VectorIndex, normalize
from .schemas import (
    Chunk,
    EngineError,
    EngineErrorSource,
    EngineState,
    ErrorKind,
    IndexStats,
    IngestResult,
    OperationResult,
    QueryResult,
    ResultStatus,
    RetrievalSettings,
    Severity,
    SourceDocument,
)
from .telemetry import TelemetryBus, _now_iso

logger = logging.getLogger(__name__)

DocumentInput = Union[str, SourceDocument]

_ERROR_KINDS = (
    (DimensionMismatch, ErrorKind.DIMENSION_MISMATCH, EngineErrorSource.VECTOR_INDEX),
    (InvalidChunkConfig, ErrorKind.INVALID_CHUNK_CONFIG, EngineErrorSource.CHUNKER),
    (StorageCorrupt, ErrorKind.STORAGE_CORRUPT, EngineErrorSource.VECTOR_INDEX),
    (ProviderUnavailable, ErrorKind.PROVIDER_UNAVAILABLE, EngineErrorSource.EMBEDDER),
    (PersistenceFailure, ErrorKind.PERSISTENCE_FAILURE, EngineErrorSource.VECTOR_INDEX),
)


class ReadWriteLock:
    """Many readers or one writer; waiting writers block new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def to_engine_error(exc: BaseException, source: Optional[EngineErrorSource] = None) -> EngineError:
    """Convert an exception raised inside the engine into an EngineError record."""
    kind, default_source = ErrorKind.UNKNOWN, EngineErrorSource.ENGINE
    for exc_type, mapped_kind, mapped_source in _ERROR_KINDS:
        if isinstance(exc, exc_type):
            kind, default_source = mapped_kind, mapped_source
            break
    return EngineError(
        kind=kind,
        message=str(exc) or exc.__class__.__name__,
        source=source or default_source,
        severity=Severity.CRITICAL if kind == ErrorKind.STORAGE_CORRUPT else Severity.ERROR,
        details={"exception": exc.__class__.__name__},
        timestamp=_now_iso(),
    )


def _provider_ready(provider: Any) -> bool:
    check = getattr(provider, "is_ready", None)
    if check is None:
        return True
    try:
        return bool(check())
    except Exception as exc:
        logger.warning("Readiness check failed for %s: %s", provider.__class__.__name__, exc)
        return False


class RetrievalEngine:
    """Orchestrates chunker, embedder, vector index and reranker.

    States: UNINITIALIZED -> LOADING -> READY <-> INDEXING. FAILED is entered
    only when loading finds corrupt storage; ``clear()`` recovers from it.

    Construct one engine at startup and pass it to callers. Operations block;
    ``submit_*`` variants run them on the engine's worker pool.
    """

    def __init__(
        self,
        index: VectorIndex,
        embedder: EmbeddingProvider,
        reranker: Optional[RerankerProvider] = None,
        settings: Optional[RetrievalSettings] = None,
        telemetry: Optional[TelemetryBus] = None,
    ) -> None:
        self.index = index
        self.embedder = embedder
        self.reranker = reranker
        self.settings = settings or RetrievalSettings()
        self.telemetry = telemetry
        self._lock = ReadWriteLock()
        self._state_lock = threading.Lock()
        self._state = EngineState.UNINITIALIZED
        self._executor: Optional[ThreadPoolExecutor] = None

    @classmethod
    def from_settings(
        cls,
        settings: RetrievalSettings,
        state_root: Path,
        embedder: Optional[EmbeddingProvider] = None,
        reranker: Optional[RerankerProvider] = None,
        telemetry: Optional[TelemetryBus] = None,
    ) -> "RetrievalEngine":
        """Build an engine whose artifacts live under ``<state_root>/index``."""
        index = VectorIndex.in_directory(
            index_dir(Path(state_root)),
            index_file=settings.index_file,
            vectors_file=settings.vectors_file,
        )
        return cls(
            index=index,
            embedder=embedder or create_embedding_provider(settings.embedding),
            reranker=reranker if reranker is not None else KeywordOverlapReranker(),
            settings=settings,
            telemetry=telemetry,
        )

    @classmethod
    def from_config_dir(
        cls,
        config_dir: Optional[str] = None,
        state_root: Optional[Path] = None,
        **kwargs: Any,
    ) -> "RetrievalEngine":
        """Load ``rag.yaml`` from ``config_dir`` and build an engine.

        Raises:
            ConfigLoadError: If the configuration file is invalid
        """
        settings = load_settings(config_dir)
        root = Path(state_root) if state_root else resolve_state_root(config_dir)
        return cls.from_settings(settings, root, **kwargs)

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #
    @property
    def state(self) -> EngineState:
        with self._state_lock:
            return self._state

    def _set_state(self, new_state: EngineState) -> None:
        with self._state_lock:
            previous, self._state = self._state, new_state
        if previous != new_state:
            logger.debug("Engine state %s -> %s", previous.value, new_state.value)
            if self.telemetry:
                self.telemetry.state_changed(previous.value, new_state.value)

    def is_ready(self) -> bool:
        return self.state == EngineState.READY and self.index.is_ready()

    def stats(self) -> IndexStats:
        with self._lock.read():
            return self.index.stats()

    def _report(self, operation: str, exc: BaseException, source: Optional[EngineErrorSource] = None) -> EngineError:
        error = to_engine_error(exc, source)
        if error.kind == ErrorKind.UNKNOWN:
            logger.exception("%s failed: %s", operation, exc)
        else:
            logger.error("%s failed: %s", operation, error.message)
        if self.telemetry:
            self.telemetry.error(operation, error)
        return error

    def _not_ready(self, operation: str) -> EngineError:
        error = EngineError(
            kind=ErrorKind.NOT_READY,
            message=f"Cannot {operation}: engine is {self.state.value}",
            severity=Severity.WARNING,
            timestamp=_now_iso(),
        )
        logger.warning(error.message)
        return error

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    def initialize(self) -> OperationResult:
        """Load the persisted index (UNINITIALIZED -> LOADING -> READY | FAILED)."""
        with self._lock.write():
            current = self.state
            if current == EngineState.READY:
                return OperationResult(status=ResultStatus.SUCCESS)
            if current != EngineState.UNINITIALIZED:
                return OperationResult(status=ResultStatus.ERROR, error=self._not_ready("initialize"))

            self._set_state(EngineState.LOADING)
            try:
                stats = self.index.load()
            except StorageCorrupt as exc:
                error = self._report("initialize", exc)
                self._set_state(EngineState.FAILED)
                return OperationResult(status=ResultStatus.ERROR, error=error)
            except Exception as exc:
                error = self._report("initialize", exc)
                self._set_state(EngineState.UNINITIALIZED)
                return OperationResult(status=ResultStatus.ERROR, error=error)

            self._set_state(EngineState.READY)
            logger.info(
                "Retrieval engine ready: %d chunks, %dD embeddings, embedded=%d",
                stats.total_chunks,
                stats.embedding_dimension,
                stats.embedded_chunks,
            )
            status = ResultStatus.SUCCESS if stats.total_chunks else ResultStatus.EMPTY
            return OperationResult(status=status)

    def clear(self) -> OperationResult:
        """Drop every chunk and delete the artifacts; recovers a FAILED engine."""
        with self._lock.write():
            if self.state not in (EngineState.READY, EngineState.FAILED):
                return OperationResult(status=ResultStatus.ERROR, error=self._not_ready("clear"))
            try:
                self.index.clear()
            except Exception as exc:
                return OperationResult(status=ResultStatus.ERROR, error=self._report("clear", exc))
            self._set_state(EngineState.READY)
            logger.info("Cleared retrieval index")
            return OperationResult(status=ResultStatus.SUCCESS)

    # ------------------------------------------------------------------ #
    # Ingest
    # ------------------------------------------------------------------ #
    def ingest(
        self,
        documents: Sequence[DocumentInput],
        chunk_size: Optional[int] = None,
        overlap: Optional[int] = None,
    ) -> IngestResult:
        """Chunk, embed and append documents, then persist the index.

        Documents are processed in order and appended one document at a time.
        If embedding fails part way, documents already appended stay in
        memory and are still persisted; ``durable_chunks`` reports how many
        of this call's chunks reached disk.
        """
        size = self.settings.chunk_size if chunk_size is None else chunk_size
        step_overlap = self.settings.chunk_overlap if overlap is None else overlap
        started = time.monotonic()

        with self._lock.write():
            if self.state != EngineState.READY:
                return IngestResult(status=ResultStatus.ERROR, error=self._not_ready("ingest"))
            try:
                validate_chunk_config(size, step_overlap)
            except InvalidChunkConfig as exc:
                return IngestResult(status=ResultStatus.ERROR, error=self._report("ingest", exc))
            if not _provider_ready(self.embedder):
                exc = ProviderUnavailable(self.embedder.__class__.__name__)
                return IngestResult(status=ResultStatus.ERROR, error=self._report("ingest", exc))

            self._set_state(EngineState.INDEXING)
            added = 0
            failure: Optional[EngineError] = None
            try:
                logger.info(
                    "Adding %d documents (chunk size %d, overlap %d)", len(documents), size, step_overlap
                )
                for position, document in enumerate(documents):
                    text, source = _coerce_document(document, position)
                    if not text.strip():
                        logger.warning("Document %d is empty, skipping", position)
                        continue
                    pieces = chunk_text(text, size, step_overlap)
                    pending = [
                        Chunk(
                            id=self.index.chunk_count + i,
                            content=piece,
                            source=source,
                            chunk_index=i,
                            embedding=self._embed(piece),
                        )
                        for i, piece in enumerate(pieces)
                    ]
                    stored = self.index.append(pending)
                    added += len(stored)
                    logger.debug("Document %d (%s): %d chunks", position, source, len(stored))
            except Exception as exc:
                failure = self._report("ingest", exc)

            durable = 0
            persist_error: Optional[EngineError] = None
            try:
                if added:
                    persist_error = self._persist_with_retry()
                    if persist_error is None:
                        durable = added
            finally:
                self._set_state(EngineState.READY)

        error = failure or persist_error
        if failure and persist_error:
            error = failure.model_copy(update={
                "details": {**(failure.details or {}), "persist_error": persist_error.message}
            })
        if error:
            status = ResultStatus.ERROR
        elif added:
            status = ResultStatus.SUCCESS
        else:
            status = ResultStatus.EMPTY

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info("Added %d chunks (%d durable) in %d ms", added, durable, duration_ms)
        if self.telemetry:
            self.telemetry.ingest_completed(len(documents), added, durable, duration_ms)
        return IngestResult(status=status, error=error, chunks_added=added, durable_chunks=durable)

    def reindex(self) -> IngestResult:
        """Re-embed every chunk in the index and persist.

        Ingest only embeds new chunks; this is the explicit full rebuild, e.g.
        after a degraded load or an embedding model change. The index is left
        untouched if any embedding fails.
        """
        started = time.monotonic()
        with self._lock.write():
            if self.state != EngineState.READY:
                return IngestResult(status=ResultStatus.ERROR, error=self._not_ready("reindex"))
            if not self.index.chunk_count:
                return IngestResult(status=ResultStatus.EMPTY)
            if not _provider_ready(self.embedder):
                exc = ProviderUnavailable(self.embedder.__class__.__name__)
                return IngestResult(status=ResultStatus.ERROR, error=self._report("reindex", exc))

            self._set_state(EngineState.INDEXING)
            try:
                try:
                    embeddings = [self._embed(chunk.content) for chunk in self.index.chunks]
                    self.index.reset_embeddings(embeddings)
                except Exception as exc:
                    return IngestResult(status=ResultStatus.ERROR, error=self._report("reindex", exc))
                count = self.index.chunk_count
                persist_error = self._persist_with_retry()
            finally:
                self._set_state(EngineState.READY)

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info("Re-embedded %d chunks in %d ms", count, duration_ms)
        if persist_error:
            return IngestResult(status=ResultStatus.ERROR, error=persist_error, chunks_added=0)
        return IngestResult(status=ResultStatus.SUCCESS, chunks_added=0, durable_chunks=count)

    def _embed(self, text: str):
        try:
            vector = self.embedder.embed(text)
        except RagEngineError:
            raise
        except Exception as exc:
            raise ProviderUnavailable(self.embedder.__class__.__name__, str(exc)) from exc
        return normalize(vector)

    def _persist_with_retry(self) -> Optional[EngineError]:
        """Persist, retrying once; return the error if both attempts fail."""
        failure: Optional[PersistenceFailure] = None
        for attempt in (1, 2):
            try:
                self.index.persist()
                return None
            except PersistenceFailure as exc:
                failure = exc
            except Exception as exc:
                failure = PersistenceFailure(str(self.index.metadata_path), str(exc))
            if attempt == 1:
                logger.warning("Persist failed, retrying once: %s", failure)
        return self._report("persist", failure)

    # ------------------------------------------------------------------ #
    # Query
    # ------------------------------------------------------------------ #
    def query(
        self,
        text: str,
        top_k: Optional[int] = None,
        use_reranking: bool = True,
        top_n: Optional[int] = None,
    ) -> QueryResult:
        """Return the chunks most similar to ``text``, optionally reranked.

        Never raises. An engine that is not ready, an empty index or a blank
        query yields an empty result. When reranking is requested and enabled,
        reranker indices are mapped back onto the vector-search candidates;
        out-of-range and repeated indices are dropped.
        """
        k = self.settings.top_k if top_k is None else top_k
        n = self.settings.rerank_top_n if top_n is None else top_n
        started = time.monotonic()

        if not text or not text.strip():
            return QueryResult(status=ResultStatus.EMPTY)

        with self._lock.read():
            state = self.state
            snapshot = self.index.snapshot()
        if state != EngineState.READY:
            logger.warning("Query skipped: engine is %s", state.value)
            return QueryResult(status=ResultStatus.EMPTY)
        if not snapshot.chunks:
            logger.info("Query skipped: index is empty")
            return QueryResult(status=ResultStatus.EMPTY)

        reranked = False
        try:
            if not _provider_ready(self.embedder):
                raise ProviderUnavailable(self.embedder.__class__.__name__)
            query_vector = self._embed(text)
            candidates = snapshot.search(query_vector, k)
            logger.debug("Vector search returned %d candidates", len(candidates))

            results: List[Chunk] = candidates
            if candidates and use_reranking and self.settings.rerank_enabled and self.reranker is not None:
                ranked, reranked = rerank_candidates(
                    self.reranker, text, [c.content for c in candidates], n
                )
                results = _remap(ranked, candidates)
        except Exception as exc:
            return QueryResult(status=ResultStatus.ERROR, error=self._report("query", exc))

        duration_ms = int((time.monotonic() - started) * 1000)
        if self.telemetry:
            self.telemetry.query_completed(k, len(results), reranked, duration_ms)
        status = ResultStatus.SUCCESS if results else ResultStatus.EMPTY
        return QueryResult(status=status, chunks=results, reranked=reranked)

    # ------------------------------------------------------------------ #
    # Worker pool
    # ------------------------------------------------------------------ #
    def _pool(self) -> ThreadPoolExecutor:
        with self._state_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.settings.max_workers,
                    thread_name_prefix="rag-engine",
                )
            return self._executor

    def submit_initialize(self) -> "Future[OperationResult]":
        return self._pool().submit(self.initialize)

    def submit_ingest(self, documents: Sequence[DocumentInput], **kwargs: Any) -> "Future[IngestResult]":
        return self._pool().submit(self.ingest, list(documents), **kwargs)

    def submit_query(self, text: str, **kwargs: Any) -> "Future[QueryResult]":
        return self._pool().submit(self.query, text, **kwargs)

    def close(self) -> None:
        with self._state_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def __enter__(self) -> "RetrievalEngine":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def _coerce_document(document: DocumentInput, position: int) -> Tuple[str, str]:
    default_source = f"document_{position}"
    if isinstance(document, SourceDocument):
        return document.text or "", document.source or default_source
    return document or "", default_source


def _remap(ranked, candidates: Sequence[Chunk]) -> List[Chunk]:
    seen = set()
    results: List[Chunk] = []
    for item in ranked:
        if not 0 <= item.index < len(candidates) or item.index in seen:
            continue
        seen.add(item.index)
        results.append(candidates[item.index])
    return results


__all__ = ["ReadWriteLock", "RetrievalEngine", "to_engine_error"]
