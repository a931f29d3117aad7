"""
epistle: pack a local codebase into a single, LLM-friendly context file.

Overview
--------
The tool scans a source tree, honouring `.gitignore`, `.llmignore` and
caller patterns, and renders one document holding:

- a directory tree,
- a metadata block (file count, token total, tech stack, redaction report),
- every small text file, with secret-shaped strings redacted,
- an optional persona preamble and trailing task block.

Formats are markdown (default) and a tagged xml-like text. The document is
written to `--output` or, when omitted, to standard output; logs go to stderr
or `--log-file`.

Usage
-----
    epistle --output context.md
    epistle --format xml --persona security --exclude "docs/" > context.xml
    epistle --task "Add pagination to the users endpoint" --hog dirs --hog-depth 2
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from epistle.exceptions import EpistleError
from epistle.file_manipulation import relpath, scan
from epistle.hogs import HogMode, find_hogs, format_hog_report
from epistle.logging import logger, setup_logging
from epistle.output_construction import RenderOptions, render
from epistle.settings import DEFAULT_TOKEN_BUDGET, Settings, env_default

if TYPE_CHECKING:
    from collections.abc import Sequence

    from epistle.config import FileTokenStat


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    p = argparse.ArgumentParser(
        prog="epistle",
        description="Pack a local codebase into a single, LLM-friendly context file.",
    )
    p.add_argument("--root", type=str, default=".", help="Directory to pack.")
    p.add_argument("-o", "--output", type=str, default=None, help="Output file path.")
    p.add_argument(
        "-e",
        "--exclude",
        action="extend",
        nargs="+",
        default=[],
        help="Additional glob patterns to exclude from scanning.",
    )
    p.add_argument(
        "-i",
        "--include",
        action="extend",
        nargs="+",
        default=[],
        help="Glob patterns to keep even when an exclude matches them.",
    )
    p.add_argument("--format", type=str, default="markdown", help='Output format: "markdown" or "xml".')
    p.add_argument("--persona", type=str, default="", help="Persona: architect | security | refactor.")
    p.add_argument("--task", type=str, default="", help="Task or instructions appended to the document.")
    p.add_argument(
        "--max-file-size",
        type=int,
        default=int(env_default("MAX_FILE_SIZE", "102400")),
        help="Maximum file size in bytes for inlining contents.",
    )
    p.add_argument(
        "--hog",
        choices=[m.value for m in HogMode],
        default="auto",
        help="Token hotspot report mode.",
    )
    p.add_argument("--hog-depth", type=int, default=None, help="Directory depth for --hog dirs.")
    p.add_argument(
        "--token-budget",
        type=int,
        default=int(env_default("TOKEN_BUDGET", str(DEFAULT_TOKEN_BUDGET))),
        help="Warn when the total token count exceeds this.",
    )
    p.add_argument("--log-file", type=str, default=env_default("LOG_FILE"), help="Log file path.")
    args = p.parse_args(argv)
    try:
        return Settings(**vars(args))
    except ValidationError as e:
        problems = "; ".join(
            f"--{str(err['loc'][0]).replace('_', '-')}: {err['msg']}" for err in e.errors()
        )
        p.error(problems)


def output_excludes(settings: Settings, root: Path) -> list[str]:
    """Exclude patterns for the run: the caller's, plus the output file when it lives under the root."""
    excludes = list(settings.exclude)
    if settings.output is not None:
        out_path = Path(settings.output).resolve()
        rel = relpath(out_path, root)
        if rel != str(out_path):
            excludes.append("/" + rel)
    return excludes


def report_hogs(
    settings: Settings,
    file_stats: Sequence[FileTokenStat],
    directory_tokens: dict[str, int],
    total: int,
) -> None:
    """Log the hog report lines; reporting only."""
    entries = find_hogs(file_stats, directory_tokens, settings.hog, settings.hog_depth)
    for line in format_hog_report(entries, total):
        logger.info("token_hog", line=line)


def main(argv: Sequence[str] | None = None) -> int:
    settings = parse_args(argv)
    if settings.log_file:
        setup_logging(settings.log_file)

    root = Path(settings.root).resolve()

    try:
        options = RenderOptions(
            format=settings.format,
            root_dir=root,
            persona=settings.persona,
            task=settings.task,
            max_file_size=settings.max_file_size,
        )
        scanned = scan(
            root,
            exclude_globs=output_excludes(settings, root),
            include_globs=settings.include,
            max_file_size=settings.max_file_size,
        )
        result = render(scanned.files, options)
    except EpistleError as e:
        logger.error("epistle_failed", error=str(e))
        print(f"Failed to generate Epistle context: {e}", file=sys.stderr)
        return 1

    if result.total_tokens > settings.token_budget:
        logger.warning(
            "token_budget_exceeded",
            total_tokens=result.total_tokens,
            budget=settings.token_budget,
            hint="Consider using --exclude to prune large directories or data files.",
        )
    report_hogs(settings, result.file_stats, result.directory_tokens, result.total_tokens)

    if settings.output is not None:
        payload = result.document.encode("utf-8", errors="replace")
        out_path = Path(settings.output).resolve()
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_bytes(payload)
    else:
        sys.stdout.write(result.document)

    logger.info(
        "packed",
        files=len(scanned.files),
        ignored=scanned.ignored_count,
        destination=str(settings.output) if settings.output is not None else "stdout",
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
