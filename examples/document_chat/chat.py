"""Interactive document chat on top of the retrieval engine.

Indexes every .txt/.md file in a directory, then answers questions with the
retrieved chunks as context. Uses Ollama for generation when reachable;
pass --mock to run fully offline.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from rag_engine import ChatService, RetrievalEngine
from rag_engine.retrieval.documents import load_text_documents
from rag_engine.runtime.llm_client import MockLLMClient, OllamaLLMClient
from rag_engine.telemetry import TelemetryBus

CONFIG_DIR = Path(__file__).resolve().parent


class EchoLLMClient(MockLLMClient):
    """Offline stand-in that echoes the context it was given."""

    def stream_generate(self, prompt: str):
        self.prompts.append(prompt)
        context = prompt.split("Previous conversation:", 1)[0].strip()
        yield context or "No matching documents."


def build_service(docs_dir: Path, state_dir: Path, mock: bool, model: str) -> ChatService:
    telemetry = TelemetryBus(max_events=500)
    engine = RetrievalEngine.from_config_dir(str(CONFIG_DIR), state_root=state_dir, telemetry=telemetry)
    init = engine.initialize()
    if not init.ok:
        raise SystemExit(f"Failed to load index: {init.error.message}")

    documents = load_text_documents(docs_dir)
    if documents:
        result = engine.ingest(documents)
        print(f"Indexed {result.chunks_added} chunks ({result.durable_chunks} saved)")

    llm = EchoLLMClient() if mock else OllamaLLMClient(model=model)
    return ChatService(engine, llm)


def main():
    parser = argparse.ArgumentParser(description="Chat with a directory of text documents.")
    parser.add_argument("docs", type=Path, help="Directory of .txt/.md files")
    parser.add_argument("--state-dir", type=Path, default=Path(".rag_engine"))
    parser.add_argument("--model", default="llama3")
    parser.add_argument("--mock", action="store_true", help="Echo retrieved context instead of calling Ollama")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    service = build_service(args.docs, args.state_dir, args.mock, args.model)
    with service.engine:
        while True:
            try:
                message = input("you> ").strip()
            except (EOFError, KeyboardInterrupt):
                print()
                break
            if not message:
                continue
            if message in {"/quit", "/exit"}:
                break
            response = service.process_message(message)
            sources = ", ".join(sorted({c.source for c in response.chunks})) or "none"
            print(f"ai> {response.text}\n    [sources: {sources}]")


if __name__ == "__main__":
    main()
