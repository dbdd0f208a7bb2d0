import json
import logging

import pytest

from smartchunk.logger import _resolve_level, configure_logging, get_logger, redirect_logging_to_file


@pytest.fixture(autouse=True)
def quiet_logging():
    yield
    configure_logging(enable_console=False)


def test_level_names_resolve_case_insensitively():
    assert _resolve_level("debug") == logging.DEBUG
    assert _resolve_level(logging.WARNING) == logging.WARNING
    with pytest.raises(ValueError):
        _resolve_level("chatty")


def test_file_redirect_writes_json_events(tmp_path):
    path = tmp_path / "logs" / "smartchunk.log"
    redirect_logging_to_file(path, "info")

    get_logger("smartchunk.tests.file").info("file_chunked", chunks=3)

    events = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert events[-1]["event"] == "file_chunked"
    assert events[-1]["chunks"] == 3
    assert events[-1]["level"] == "info"
