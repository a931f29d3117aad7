from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from epistle.config import ScannedFile


def count_words(text: str) -> int:
    return len(text.split())


@pytest.fixture
def token_counter() -> Callable[[str], int]:
    """Deterministic stand-in for the tokenizer: one token per whitespace-separated word."""
    return count_words


@pytest.fixture
def make_file() -> Callable[..., ScannedFile]:
    def factory(
        path: str,
        content: str | None = "",
        *,
        binary: bool = False,
        oversized: bool = False,
        size: int | None = None,
    ) -> ScannedFile:
        if binary or oversized:
            content = None
        return ScannedFile(
            path=path,
            absolute_path=Path("/repo") / path,
            size=size if size is not None else len((content or "").encode("utf-8")),
            is_binary=binary,
            is_oversized=oversized,
            content=content,
        )

    return factory
