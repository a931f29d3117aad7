from __future__ import annotations

import io
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from epistle.config import (
    DEFAULT_MAX_FILE_SIZE_BYTES,
    FileTokenStat,
    OutputFormat,
    Persona,
    guess_language,
    parse_output_format,
    parse_persona,
)
from epistle.logging import logger
from epistle.redaction import build_redacted_overlay
from epistle.tech_stack import detect_tech_stack
from epistle.tokens import aggregate_directory_tokens, compute_file_token_stats, load_token_counter
from epistle.tree import render_tree

if TYPE_CHECKING:
    from collections.abc import Sequence

    from epistle.config import ScannedFile
    from epistle.redaction import RedactedOverlay
    from epistle.tokens import TokenCounter

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")

_XML_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)

TASK_PENDING_LINE = "Task Status: Pending (See end of file)"


class RenderOptions(BaseModel):
    """How a document is rendered.

    Format and persona are checked when the options are built, so an invalid
    value is reported before any file is touched.
    """

    model_config = ConfigDict(frozen=True)

    format: OutputFormat = OutputFormat.MARKDOWN
    root_dir: Path = Field(default_factory=Path.cwd)
    persona: Persona | None = None
    task: str = ""
    max_file_size: int = Field(default=DEFAULT_MAX_FILE_SIZE_BYTES, ge=0)

    @field_validator("format", mode="before")
    @classmethod
    def _parse_format(cls, value: Any) -> OutputFormat:  # noqa: ANN401
        return parse_output_format(value)

    @field_validator("persona", mode="before")
    @classmethod
    def _parse_persona(cls, value: Any) -> Persona | None:  # noqa: ANN401
        return parse_persona(value)

    @property
    def has_task(self) -> bool:
        return bool(self.task.strip())


class RenderResult(BaseModel):
    """The rendered document and the token statistics computed for it."""

    model_config = ConfigDict(frozen=True)

    document: str
    total_tokens: int
    file_stats: list[FileTokenStat]
    directory_tokens: dict[str, int]
    redaction_count: int = 0


def slugify_heading(value: str) -> str:
    """Anchor slug of a path: lowercase, runs of non-alphanumerics removed."""
    return _SLUG_STRIP.sub("", value.lower())


def xml_escape(value: str) -> str:
    """Escape ampersands, angle brackets and quotes for attributes and bodies."""
    for raw, escaped in _XML_ESCAPES:
        value = value.replace(raw, escaped)
    return value


def cdata(value: str) -> str:
    """Wrap text in a CDATA section, splitting any literal `]]>` it contains."""
    return "<![CDATA[" + value.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def placeholder_for(file: ScannedFile, max_file_size: int = DEFAULT_MAX_FILE_SIZE_BYTES) -> str | None:
    """Placeholder shown instead of the content of a file, None when the content is shown."""
    if file.is_binary:
        return "(binary file, contents not included)"
    if file.is_oversized:
        return f"(file >{max_file_size // 1024}KB, contents skipped)"
    if not file.content:
        return "(no content)"
    return None


def build_header_lines(
    *,
    options: RenderOptions,
    file_count: int,
    total_tokens: int,
    tech_stack: Sequence[str],
    redaction_count: int,
) -> list[str]:
    """Build the lines of the metadata block."""
    lines = [
        f"Root: {options.root_dir}",
        f"Total Files: {file_count}",
        f"Total Tokens: {total_tokens}",
    ]
    if tech_stack:
        lines.append("Tech Stack: " + ", ".join(tech_stack))
    if options.has_task:
        lines.append(TASK_PENDING_LINE)
    if redaction_count > 0:
        lines.append(f"Safety: {redaction_count} secrets were detected and automatically redacted.")
    else:
        lines.append("Safety: No secrets were detected. Manual review is still recommended.")
    return lines


def build_markdown(
    files: Sequence[ScannedFile],
    overlay: RedactedOverlay,
    *,
    options: RenderOptions,
    tree_text: str,
    header_lines: Sequence[str],
) -> str:
    """Build the markdown document.

    Layout: persona preamble, tree, table of contents of inlineable files,
    metadata block, one section per file, and the task block. Every section
    heading carries the same anchor slug as its table of contents entry.

    Args:
        files (Sequence[ScannedFile]): path-sorted files
        overlay (RedactedOverlay): redacted text keyed by path
        options (RenderOptions): rendering options
        tree_text (str): the rendered directory tree
        header_lines (Sequence[str]): the metadata block lines

    Returns:
        str: the markdown document
    """
    out = io.StringIO()
    if options.persona is not None:
        out.write(f"{options.persona.preamble}\n\n")

    out.write("```\n")
    if tree_text:
        out.write(f"{tree_text}\n")
    out.write("```\n\n")

    out.write("## Table of Contents\n\n")
    for f in files:
        if placeholder_for(f) is None:
            out.write(f"- [{f.path}](#{slugify_heading(f.path)})\n")
    out.write("\n")

    out.write("```\n")
    out.write("\n".join(header_lines))
    out.write("\n```\n\n")

    for f in files:
        out.write(f"## {f.path} {{#{slugify_heading(f.path)}}}\n\n")
        note = placeholder_for(f, options.max_file_size)
        if note is not None:
            out.write(f"{note}\n\n")
            continue
        lang = guess_language(f.path)
        out.write(f"```{lang}\n{overlay.text_for(f)}\n```\n\n")

    if options.has_task:
        out.write("## User Task / Instructions\n\n")
        out.write(f"```\n{options.task}\n```\n\n")

    return out.getvalue()


def build_xml(
    files: Sequence[ScannedFile],
    overlay: RedactedOverlay,
    *,
    options: RenderOptions,
    tree_text: str,
    header_lines: Sequence[str],
) -> str:
    """Build the tagged-text document.

    Tree, metadata, persona and task bodies are wrapped in CDATA sections;
    file paths and file bodies are escaped.

    Args:
        files (Sequence[ScannedFile]): path-sorted files
        overlay (RedactedOverlay): redacted text keyed by path
        options (RenderOptions): rendering options
        tree_text (str): the rendered directory tree
        header_lines (Sequence[str]): the metadata block lines

    Returns:
        str: the tagged-text document
    """
    parts: list[str] = ["<epistle>"]
    if options.persona is not None:
        parts.append(f"<persona>{cdata(options.persona.preamble)}</persona>")
    parts.append(f"<tree>{cdata(tree_text)}</tree>")
    metadata = "\n".join(header_lines)
    parts.append(f"<metadata>{cdata(metadata)}</metadata>")

    for f in files:
        attrs = f'path="{xml_escape(f.path)}"'
        note = placeholder_for(f, options.max_file_size)
        body = note if note is not None else overlay.text_for(f)
        parts.append(f"<file {attrs}>{xml_escape(body)}</file>")

    if options.has_task:
        parts.append(f"<task>{cdata(options.task)}</task>")
    parts.append("</epistle>")
    return "\n".join(parts) + "\n"


def render(
    files: Sequence[ScannedFile],
    options: RenderOptions,
    token_counter: TokenCounter | None = None,
) -> RenderResult:
    """Assemble the final document from a scanned file snapshot.

    Redaction runs once per file and its overlay feeds both the token counts
    and the document. The display tree is rebuilt from `files` on every call.

    Args:
        files (Sequence[ScannedFile]): the scanned files
        options (RenderOptions): rendering options
        token_counter (TokenCounter | None): token counting function; the
            default tokenizer profile is loaded when omitted

    Raises:
        TokenizerUnavailableError: if no counter is given and the tokenizer cannot be loaded.

    Returns:
        RenderResult: the document, total tokens, per-file and per-directory stats
    """
    counter = token_counter or load_token_counter()
    ordered = sorted(files, key=lambda f: f.path)

    overlay = build_redacted_overlay(ordered)
    file_stats = compute_file_token_stats(ordered, overlay, counter)
    directory_tokens = aggregate_directory_tokens(file_stats)
    total_tokens = directory_tokens[""]

    header_lines = build_header_lines(
        options=options,
        file_count=len(ordered),
        total_tokens=total_tokens,
        tech_stack=detect_tech_stack(ordered),
        redaction_count=overlay.count,
    )
    tree_text = render_tree(ordered, max_file_size=options.max_file_size)

    builder = build_xml if options.format is OutputFormat.XML else build_markdown
    document = builder(
        ordered,
        overlay,
        options=options,
        tree_text=tree_text,
        header_lines=header_lines,
    )
    logger.info(
        "render_complete",
        format=str(options.format),
        files=len(ordered),
        total_tokens=total_tokens,
        redactions=overlay.count,
    )
    return RenderResult(
        document=document,
        total_tokens=total_tokens,
        file_stats=file_stats,
        directory_tokens=directory_tokens,
        redaction_count=overlay.count,
    )
