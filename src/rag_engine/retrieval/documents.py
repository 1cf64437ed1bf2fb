"""Loading plain-text documents from disk for ingestion."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Sequence

from rag_engine.schemas import SourceDocument

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".txt", ".md")


def load_text_documents(
    directory: Path,
    extensions: Sequence[str] = DEFAULT_EXTENSIONS,
) -> List[SourceDocument]:
    """Read every matching file directly under ``directory``, sorted by name.

    Unreadable or empty files are skipped with a warning. A missing
    directory yields an empty list.
    """
    directory = Path(directory)
    if not directory.is_dir():
        logger.info("Documents directory %s does not exist", directory)
        return []

    allowed = {ext.lower() for ext in extensions}
    paths = sorted(p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in allowed)
    return load_text_files(paths)


def load_text_files(paths: Iterable[Path]) -> List[SourceDocument]:
    """Read the given files as UTF-8 documents tagged with their file names."""
    documents: List[SourceDocument] = []
    for path in paths:
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Failed to read %s: %s", path, exc)
            continue
        if not text.strip():
            logger.warning("Document %s is empty, skipping", path)
            continue
        documents.append(SourceDocument(text=text, source=path.name))
    logger.info("Loaded %d documents", len(documents))
    return documents


__all__ = ["DEFAULT_EXTENSIONS", "load_text_documents", "load_text_files"]
