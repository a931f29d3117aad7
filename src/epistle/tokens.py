"""Token accounting per file and per directory."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from functools import cache
from typing import TYPE_CHECKING

import tiktoken

from epistle.config import FileTokenStat
from epistle.exceptions import TokenizerUnavailableError
from epistle.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from epistle.config import ScannedFile
    from epistle.redaction import RedactedOverlay

TokenCounter = Callable[[str], int]

DEFAULT_TOKENIZER_MODEL = "gpt-4o-mini"


@cache
def load_encoding(model: str = DEFAULT_TOKENIZER_MODEL) -> tiktoken.Encoding:
    """Load and cache the tiktoken encoding used for a model.

    Args:
        model (str): model name the encoding is resolved for

    Raises:
        TokenizerUnavailableError: if the encoding cannot be resolved or loaded.

    Returns:
        tiktoken.Encoding: the loaded encoding
    """
    try:
        encoding = tiktoken.encoding_for_model(model)
    except Exception as e:  # noqa: BLE001
        raise TokenizerUnavailableError(model=model, reason=str(e)) from e
    logger.info("tokenizer_loaded", model=model, encoding=encoding.name)
    return encoding


def load_token_counter(model: str = DEFAULT_TOKENIZER_MODEL) -> TokenCounter:
    """Build the token counter of the fixed tokenizer profile.

    Raises:
        TokenizerUnavailableError: if the encoding cannot be loaded.
    """
    encoding = load_encoding(model)

    def count(text: str) -> int:
        return len(encoding.encode(text, disallowed_special=()))

    return count


def compute_file_token_stats(
    files: Sequence[ScannedFile],
    overlay: RedactedOverlay,
    counter: TokenCounter,
) -> list[FileTokenStat]:
    """Count tokens of every file over its redacted text.

    Binary, oversized and empty files count as zero.

    Args:
        files (Sequence[ScannedFile]): the scanned files
        overlay (RedactedOverlay): redacted text keyed by path
        counter (TokenCounter): token counting function

    Returns:
        list[FileTokenStat]: one stat per file, in input order
    """
    stats: list[FileTokenStat] = []
    for f in files:
        if not f.content:
            stats.append(FileTokenStat(path=f.path, tokens=0))
            continue
        stats.append(FileTokenStat(path=f.path, tokens=counter(overlay.text_for(f))))
    return stats


def aggregate_directory_tokens(stats: Iterable[FileTokenStat]) -> dict[str, int]:
    """Sum file tokens into every ancestor directory.

    Each directory maps to the tokens of all files transitively beneath it; the
    empty key holds the grand total. Directories with only zero-token files are
    present with a zero value.

    Args:
        stats (Iterable[FileTokenStat]): per-file token counts

    Returns:
        dict[str, int]: directory path (without trailing slash) to aggregated tokens
    """
    totals: defaultdict[str, int] = defaultdict(int)
    totals[""] = 0
    for st in stats:
        segments = [s for s in st.path.split("/") if s]
        for i in range(1, len(segments)):
            totals["/".join(segments[:i])] += st.tokens
        totals[""] += st.tokens
    return dict(totals)
