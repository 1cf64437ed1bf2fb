"""Command-line entry point for the retrieval engine.

    rag-engine ingest docs/ notes.md
    rag-engine query "how do I reset the device" --top-k 3
    rag-engine stats
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .engine import RetrievalEngine
from .exceptions import ConfigLoadError
from .retrieval.documents import load_text_documents, load_text_files
from .schemas import Chunk, OperationResult, SourceDocument


def _collect_documents(paths: Sequence[str]) -> List[SourceDocument]:
    documents: List[SourceDocument] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            documents.extend(load_text_documents(path))
        else:
            documents.extend(load_text_files([path]))
    return documents


def _chunk_dict(chunk: Chunk) -> Dict[str, Any]:
    return {
        "id": chunk.id,
        "source": chunk.source,
        "chunkIndex": chunk.chunk_index,
        "content": chunk.content,
    }


def _result_dict(result: OperationResult) -> Dict[str, Any]:
    data: Dict[str, Any] = {"status": result.status.value}
    if result.error:
        data["error"] = result.error.model_dump(mode="json", exclude_none=True)
    return data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rag-engine", description="Local document retrieval engine.")
    parser.add_argument("--config-dir", help="Directory containing rag.yaml")
    parser.add_argument("--state-dir", help="Directory for index artifacts (overrides RAG_ENGINE_STATE_DIR)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Chunk, embed and index text files or directories")
    ingest.add_argument("paths", nargs="+")
    ingest.add_argument("--chunk-size", type=int)
    ingest.add_argument("--overlap", type=int)

    query = sub.add_parser("query", help="Retrieve the chunks most relevant to a question")
    query.add_argument("text")
    query.add_argument("--top-k", type=int)
    query.add_argument("--no-rerank", action="store_true")

    sub.add_parser("stats", help="Show index statistics")
    sub.add_parser("clear", help="Delete every indexed chunk")
    sub.add_parser("reindex", help="Re-embed every indexed chunk")
    return parser


def run(args: argparse.Namespace) -> Dict[str, Any]:
    engine = RetrievalEngine.from_config_dir(
        args.config_dir,
        state_root=Path(args.state_dir) if args.state_dir else None,
    )
    with engine:
        init = engine.initialize()
        if not init.ok and args.command != "clear":
            return _result_dict(init)

        if args.command == "ingest":
            result = engine.ingest(
                _collect_documents(args.paths),
                chunk_size=args.chunk_size,
                overlap=args.overlap,
            )
            output = _result_dict(result)
            output.update(chunksAdded=result.chunks_added, durableChunks=result.durable_chunks)
            return output
        if args.command == "query":
            result = engine.query(args.text, top_k=args.top_k, use_reranking=not args.no_rerank)
            output = _result_dict(result)
            output.update(reranked=result.reranked, chunks=[_chunk_dict(c) for c in result.chunks])
            return output
        if args.command == "stats":
            return engine.stats().model_dump(by_alias=True)
        if args.command == "clear":
            return _result_dict(engine.clear())
        if args.command == "reindex":
            result = engine.reindex()
            output = _result_dict(result)
            output.update(durableChunks=result.durable_chunks)
            return output
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        output = run(args)
    except ConfigLoadError as exc:
        print(json.dumps({"status": "error", "error": {"message": str(exc)}}))
        return 2
    print(json.dumps(output, indent=2))
    return 1 if output.get("status") == "error" else 0


if __name__ == "__main__":
    sys.exit(main())
