from smartchunk.models import RECORD_FIELDS, ChunkRecord, SourceFile, render_context


def test_source_file_line_index() -> None:
    source = SourceFile(path="x.py", language="python", data=b"ab\ncd\n\nef")
    assert source.line_starts == (0, 3, 6, 7)
    assert source.line_of(0) == 1
    assert source.line_of(2) == 1  # the newline belongs to its line
    assert source.line_of(3) == 2
    assert source.line_of(7) == 4
    assert source.line_start(4) == 3
    assert source.last_line_of(0, 3) == 1
    assert source.last_line_of(3, 9) == 4
    assert source.text(3, 5) == "cd"


def test_render_context() -> None:
    assert render_context(()) == ""
    assert render_context(("impl(Point)", "method(norm)")) == "impl(Point) > method(norm)"


def test_record_serialises_exact_fields() -> None:
    record = ChunkRecord(
        id="abc",
        file_path="x.py",
        language="python",
        chunk_type="function_partial",
        chunk_name="f",
        context="partial(1/2)",
        signature="def f():",
        comment="",
        code="def f():\n    pass",
        start_line=1,
        end_line=2,
        token_count=3,
        oversized=True,
    )
    data = record.to_dict()
    assert tuple(data) == RECORD_FIELDS
    assert "oversized" not in data
    assert record.is_partial
    assert record.with_id("def").id == "def"
    assert record.with_id("def").oversized
