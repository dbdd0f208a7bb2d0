"""
Token counting backed by tiktoken.
"""
from __future__ import annotations

import threading
from typing import Callable, Dict

import tiktoken

from .errors import ConfigurationError, TokenizationError
from .logger import get_logger

log = get_logger(__name__)

TokenCounter = Callable[[str], int]

DEFAULT_ENCODING = "cl100k_base"

_ENCODING_CACHE: Dict[str, "tiktoken.Encoding"] = {}
_ENCODING_LOCK = threading.Lock()


def _load_encoding(name: str) -> "tiktoken.Encoding":
    with _ENCODING_LOCK:
        if name not in _ENCODING_CACHE:
            log.info("tokenizer_loading", encoding=name)
            _ENCODING_CACHE[name] = tiktoken.get_encoding(name)
        return _ENCODING_CACHE[name]


class TiktokenCounter:
    """
    Callable that returns the number of tokens in a text.

    Special-token markers such as ``<|endoftext|>`` are counted as regular
    text, so source files containing them never raise.
    """

    def __init__(self, encoding_name: str = DEFAULT_ENCODING) -> None:
        self.encoding_name = encoding_name
        try:
            self._encoding = _load_encoding(encoding_name)
        except Exception as exc:
            raise ConfigurationError(
                f"Could not load tokenizer encoding {encoding_name!r}: {exc}"
            ) from exc

    def __call__(self, text: str) -> int:
        try:
            return len(self._encoding.encode(text, disallowed_special=()))
        except Exception as exc:
            raise TokenizationError(f"Tokenizer failed on {len(text)} chars: {exc}") from exc
