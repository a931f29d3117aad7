"""Hotspot ("hog") report over token statistics.

Reporting only: nothing here changes which files end up in the document.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

from epistle.config import FileTokenStat, HogEntry

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

TOP_LIMIT = 5
AUTO_FILE_LIMIT = 3
AUTO_DIR_LIMIT = 2


class HogMode(StrEnum):
    """What the hog report ranks."""

    FILES = "files"
    DIRS = "dirs"
    AUTO = "auto"


def _depth(path: str) -> int:
    return len([s for s in path.split("/") if s])


def top_files(stats: Sequence[FileTokenStat], limit: int = TOP_LIMIT) -> list[HogEntry]:
    """Rank files by token count, descending; ties keep input order."""
    ranked = sorted((s for s in stats if s.tokens > 0), key=lambda s: -s.tokens)
    return [HogEntry(path=s.path, tokens=s.tokens) for s in ranked[:limit]]


def top_directories(
    directory_tokens: Mapping[str, int],
    depth: int,
    limit: int = TOP_LIMIT,
) -> list[HogEntry]:
    """Rank the directories sitting exactly `depth` segments below the root.

    Args:
        directory_tokens (Mapping[str, int]): aggregated tokens per directory
        depth (int): number of path segments the directories must have
        limit (int): maximum number of entries

    Raises:
        ValueError: if `depth` is lower than 1.

    Returns:
        list[HogEntry]: directories by descending tokens, paths ending with "/"
    """
    if depth < 1:
        msg = f"Directory depth must be at least 1, got {depth}"
        raise ValueError(msg)
    candidates = sorted(
        (path, tokens)
        for path, tokens in directory_tokens.items()
        if path and tokens > 0 and _depth(path) == depth
    )
    ranked = sorted(candidates, key=lambda item: -item[1])
    return [HogEntry(path=f"{path}/", tokens=tokens, is_directory=True) for path, tokens in ranked[:limit]]


def shallowest_active_depth(directory_tokens: Mapping[str, int]) -> int:
    """Smallest directory depth holding a non-zero aggregate, 1 when there is none."""
    depths = [_depth(path) for path, tokens in directory_tokens.items() if path and tokens > 0]
    return min(depths, default=1)


def find_hogs(
    stats: Sequence[FileTokenStat],
    directory_tokens: Mapping[str, int],
    mode: HogMode | str = HogMode.AUTO,
    depth: int | None = None,
) -> list[HogEntry]:
    """Build the hog report in the requested mode.

    - files: the top files.
    - dirs: the top directories at `depth` (1 when not given).
    - auto: the top 3 files, then the top 2 directories at the shallowest depth
      that has a non-zero aggregate.

    Args:
        stats (Sequence[FileTokenStat]): per-file token counts, sorted by path
        directory_tokens (Mapping[str, int]): aggregated tokens per directory
        mode (HogMode | str): report mode
        depth (int | None): directory depth for the dirs mode

    Returns:
        list[HogEntry]: the report entries
    """
    mode = HogMode(mode)
    if mode is HogMode.FILES:
        return top_files(stats)
    if mode is HogMode.DIRS:
        return top_directories(directory_tokens, depth if depth is not None else 1)
    auto_depth = shallowest_active_depth(directory_tokens)
    return [
        *top_files(stats, limit=AUTO_FILE_LIMIT),
        *top_directories(directory_tokens, auto_depth, limit=AUTO_DIR_LIMIT),
    ]


def format_hog_report(entries: Sequence[HogEntry], total_tokens: int) -> list[str]:
    """Format hog entries as report lines with their share of the total."""
    lines: list[str] = []
    for entry in entries:
        share = (entry.tokens / total_tokens * 100) if total_tokens else 0.0
        kind = "dir " if entry.is_directory else "file"
        lines.append(f"{kind} {entry.tokens:>8} tokens {share:5.1f}%  {entry.path}")
    return lines
