import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from smartchunk.cli import app
from smartchunk.models import RECORD_FIELDS
from smartchunk.version import get_version

pytest.importorskip("tree_sitter_language_pack", reason="tree-sitter-language-pack not installed")

runner = CliRunner()


class WordCounter:
    def __init__(self, encoding_name: str = "words") -> None:
        self.encoding_name = encoding_name

    def __call__(self, text: str) -> int:
        return len(text.split())


@pytest.fixture(autouse=True)
def offline_tokenizer(monkeypatch):
    monkeypatch.setattr("smartchunk.services.pipeline.TiktokenCounter", WordCounter)


def test_run_writes_jsonl_records(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    repo.mkdir()
    (repo / "main.go").write_text(
        "package main\n\n// Entry point.\nfunc main() {\n\tprintln(\"hi\")\n}\n"
    )
    (repo / "util.py").write_text("def helper():\n    return 42\n")
    output = tmp_path / "chunks.jsonl"

    result = runner.invoke(
        app, ["run", "--path", str(repo), "--output", str(output), "--workers", "2"]
    )

    assert result.exit_code == 0, result.output
    assert "Chunked 2 files" in result.output
    rows = [json.loads(line) for line in output.read_text(encoding="utf-8").splitlines()]
    assert len(rows) == 2
    for row in rows:
        assert tuple(row) == RECORD_FIELDS
    by_name = {row["chunk_name"]: row for row in rows}
    assert by_name["main"]["language"] == "go"
    assert by_name["main"]["comment"] == "// Entry point."
    assert by_name["helper"]["code"] == "def helper():\n    return 42"


def test_run_reports_failed_files(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    repo.mkdir()
    (repo / "bad.py").write_text("def broken(:\n    pass\n")
    output = tmp_path / "chunks.jsonl"

    result = runner.invoke(app, ["run", "--path", str(repo), "--output", str(output)])

    assert result.exit_code == 0, result.output
    assert "Failed files: 1" in result.output
    assert "[parse_failure]" in result.output


def test_run_from_file_list(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    repo.mkdir()
    (repo / "a.py").write_text("def a():\n    pass\n")
    (repo / "b.py").write_text("def b():\n    pass\n")
    listing = tmp_path / "files.txt"
    listing.write_text("b.py\n")
    output = tmp_path / "chunks.jsonl"

    result = runner.invoke(
        app,
        ["run", "--path", str(repo), "--output", str(output), "--files-from", str(listing)],
    )

    assert result.exit_code == 0, result.output
    rows = [json.loads(line) for line in output.read_text(encoding="utf-8").splitlines()]
    assert [row["chunk_name"] for row in rows] == ["b"]


@pytest.mark.parametrize("args", [["--max-tokens", "0"], ["--workers", "0"]])
def test_invalid_configuration_exits_with_error(tmp_path: Path, args) -> None:
    result = runner.invoke(
        app, ["run", "--path", str(tmp_path), "--output", str(tmp_path / "o.jsonl"), *args]
    )
    assert result.exit_code == 2
    assert "[ERROR]" in result.output


def test_missing_root_exits_with_error(tmp_path: Path) -> None:
    result = runner.invoke(app, ["run", "--path", str(tmp_path / "missing")])
    assert result.exit_code == 2


def test_languages_lists_builtin_drivers() -> None:
    result = runner.invoke(app, ["languages"])
    assert result.exit_code == 0
    assert "- python: .py" in result.output
    assert "- rust: .rs" in result.output


def test_version_prints_package_version() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.output.strip() == get_version()
