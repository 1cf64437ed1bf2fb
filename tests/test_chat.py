import pytest

from rag_engine.engine import RetrievalEngine
from rag_engine.runtime.chat import (
    TIMEOUT_MESSAGE,
    TRUNCATION_NOTICE,
    ChatService,
    build_prompt,
    format_context,
)
from rag_engine.runtime.conversation import ConversationContext
from rag_engine.runtime.llm_client import MockLLMClient
from rag_engine.schemas import (
    Chunk,
    EmbeddingConfig,
    EngineErrorSource,
    ErrorKind,
    RetrievalSettings,
    SourceDocument,
)

MANUAL = (
    "To reset the thermostat hold the mode button for ten seconds until the "
    "display blinks. The thermostat then restores factory schedules."
)


class BrokenLLMClient:
    def stream_generate(self, prompt):
        yield "partial"
        raise ConnectionError("generation backend crashed")


def make_service(tmp_path, llm_client, documents=(), **overrides):
    settings = RetrievalSettings(embedding=EmbeddingConfig(dimension=64), **overrides)
    engine = RetrievalEngine.from_settings(settings, tmp_path)
    engine.initialize()
    if documents:
        engine.ingest(list(documents))
    return ChatService(engine, llm_client)


def test_format_context_and_prompt():
    chunks = [
        Chunk(id=0, content="first", source="a.md", chunk_index=0),
        Chunk(id=1, content="second", source="b.md", chunk_index=0),
    ]
    context = format_context(chunks)
    assert context == "[a.md] first\n\n[b.md] second"

    assert build_prompt("hi", context, "user: hello") == (
        "Context from documents:\n[a.md] first\n\n[b.md] second\n\n"
        "Previous conversation:\nuser: hello\n\nUser: hi"
    )
    assert build_prompt("hi", "", "") == "Previous conversation:\n\n\nUser: hi"


def test_answer_uses_document_context(tmp_path):
    llm = MockLLMClient(["Hold the mode", " button."])
    service = make_service(tmp_path, llm, [SourceDocument(MANUAL, "thermostat.md")])

    response = service.process_message("How do I reset the thermostat?", channel_id="kitchen")

    assert response.text == "Hold the mode button."
    assert not response.timed_out
    assert response.error is None
    assert [c.source for c in response.chunks] == ["thermostat.md"]
    assert llm.prompts[0].startswith("Context from documents:\n[thermostat.md] To reset")
    assert llm.prompts[0].endswith("User: How do I reset the thermostat?")

    history = service.conversation.recent_messages("kitchen", 10)
    assert [(m.role, m.content) for m in history] == [
        ("user", "How do I reset the thermostat?"),
        ("assistant", "Hold the mode button."),
    ]


def test_history_is_included_in_later_prompts(tmp_path):
    llm = MockLLMClient("ok")
    service = make_service(tmp_path, llm)

    service.process_message("first question")
    service.process_message("second question")

    assert llm.prompts[0] == "Previous conversation:\n\n\nUser: first question"
    assert llm.prompts[1] == (
        "Previous conversation:\nuser: first question\nassistant: ok\n\nUser: second question"
    )


def test_without_rag_sends_message_verbatim(tmp_path):
    llm = MockLLMClient("plain")
    service = make_service(tmp_path, llm, [MANUAL])

    response = service.process_message("thermostat", use_rag=False)

    assert llm.prompts == ["thermostat"]
    assert response.chunks == []
    assert response.text == "plain"


def test_history_window_respects_setting(tmp_path):
    llm = MockLLMClient("r")
    service = make_service(tmp_path, llm, history_messages=2)
    service.process_message("one")
    service.process_message("two")
    service.process_message("three")

    assert "user: one" not in llm.prompts[-1]
    assert llm.prompts[-1] == "Previous conversation:\nuser: two\nassistant: r\n\nUser: three"


def test_long_response_is_truncated(tmp_path):
    llm = MockLLMClient(["12345", "67890", "abc"])
    service = make_service(tmp_path, llm, max_response_chars=10)

    response = service.process_message("count")

    assert response.truncated
    assert response.text == "1234567890" + TRUNCATION_NOTICE
    assert len(service.conversation.recent_messages(None, 10)) == 2


def test_generation_timeout(tmp_path):
    llm = MockLLMClient(["slow", "tokens"], delay=0.5)
    service = make_service(tmp_path, llm, generation_timeout_s=0.05)

    response = service.process_message("hello")

    assert response.timed_out
    assert response.text == TIMEOUT_MESSAGE
    assert service.conversation.recent_messages(None, 10) == []


def test_generation_error(tmp_path):
    service = make_service(tmp_path, BrokenLLMClient())

    response = service.process_message("hello")

    assert response.text.startswith("Error: ")
    assert "generation backend crashed" in response.text
    assert response.error.kind == ErrorKind.PROVIDER_UNAVAILABLE
    assert response.error.source == EngineErrorSource.GENERATION
    assert service.conversation.recent_messages(None, 10) == []


def test_conversation_defaults_from_settings(tmp_path):
    service = make_service(tmp_path, MockLLMClient("x"), max_history_messages=4)
    assert isinstance(service.conversation, ConversationContext)
    assert service.conversation.max_messages == 4


@pytest.mark.parametrize("channel", [None, "default"])
def test_none_channel_is_default(tmp_path, channel):
    service = make_service(tmp_path, MockLLMClient("x"))
    service.process_message("hi", channel_id=channel)
    assert len(service.conversation.recent_messages("default", 10)) == 2
