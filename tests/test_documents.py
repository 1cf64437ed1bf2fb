from rag_engine.retrieval.documents import load_text_documents, load_text_files


def test_loads_matching_files_sorted(tmp_path):
    (tmp_path / "b.md").write_text("# Beta", encoding="utf-8")
    (tmp_path / "a.txt").write_text("Alpha", encoding="utf-8")
    (tmp_path / "image.png").write_bytes(b"\x89PNG")
    (tmp_path / "nested").mkdir()
    (tmp_path / "nested" / "c.txt").write_text("Gamma", encoding="utf-8")

    docs = load_text_documents(tmp_path)

    assert [(d.source, d.text) for d in docs] == [("a.txt", "Alpha"), ("b.md", "# Beta")]


def test_custom_extensions(tmp_path):
    (tmp_path / "notes.rst").write_text("Notes", encoding="utf-8")
    (tmp_path / "a.txt").write_text("Alpha", encoding="utf-8")

    docs = load_text_documents(tmp_path, extensions=[".RST"])
    assert [d.source for d in docs] == ["notes.rst"]


def test_missing_directory(tmp_path):
    assert load_text_documents(tmp_path / "nope") == []


def test_skips_empty_and_unreadable(tmp_path):
    (tmp_path / "empty.txt").write_text("   \n", encoding="utf-8")
    (tmp_path / "binary.txt").write_bytes(b"\xff\xfe\xfa")
    good = tmp_path / "good.txt"
    good.write_text("content", encoding="utf-8")

    docs = load_text_files([tmp_path / "empty.txt", tmp_path / "binary.txt", good, tmp_path / "missing.txt"])

    assert [d.source for d in docs] == ["good.txt"]
