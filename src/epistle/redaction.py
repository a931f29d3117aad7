"""Heuristic, best-effort redaction of secret-shaped strings.

This is not a security-grade scanner: only a handful of well-known key shapes
are recognised. Generic long tokens, SHA/SRI digests and plain hex hashes are
deliberately left alone to keep false positives down.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from collections.abc import Iterable

    from epistle.config import ScannedFile

REDACTION_PLACEHOLDER: Final[str] = "[REDACTED_SECRET]"

SECRET_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"sk-[A-Za-z0-9]{16,}"),  # OpenAI-style keys
    re.compile(r"AKIA[0-9A-Z]{16}"),  # AWS access key ids
    re.compile(r"AIza[0-9A-Za-z\-_]{20,}"),  # Google API keys
    re.compile(r"\b[A-Za-z0-9_-]{20,}\.[A-Za-z0-9_-]{20,}\.[A-Za-z0-9_-]{20,}\b"),  # JWT-like
)


class RedactedOverlay(BaseModel):
    """Redacted text of every inlineable file, keyed by path."""

    model_config = ConfigDict(frozen=True)

    texts: dict[str, str] = Field(default_factory=dict)
    count: int = 0

    def text_for(self, file: ScannedFile) -> str:
        """Return the redacted text of `file`, or its raw content when absent from the overlay."""
        return self.texts.get(file.path, file.content or "")


def redact_secrets(text: str) -> tuple[str, int]:
    """Replace every secret-shaped match with the placeholder.

    Args:
        text (str): the text to redact

    Returns:
        tuple[str, int]: the redacted text and the number of replacements
    """
    count = 0
    for pattern in SECRET_PATTERNS:
        text, n = pattern.subn(REDACTION_PLACEHOLDER, text)
        count += n
    return text, count


def build_redacted_overlay(files: Iterable[ScannedFile]) -> RedactedOverlay:
    """Redact every inlineable file once.

    Binary and oversized files carry no content and are skipped. The scanned
    files themselves are left untouched.

    Args:
        files (Iterable[ScannedFile]): the scanned files

    Returns:
        RedactedOverlay: the path-keyed redacted texts and the total match count
    """
    texts: dict[str, str] = {}
    total = 0
    for f in files:
        if f.content is None:
            continue
        texts[f.path], n = redact_secrets(f.content)
        total += n
    return RedactedOverlay(texts=texts, count=total)
