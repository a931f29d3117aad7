from __future__ import annotations

from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator

from epistle.exceptions import UnknownPersonaError, UnsupportedFormatError

DEFAULT_MAX_FILE_SIZE_BYTES = 100 * 1024

# Convention-named pattern files read from the scan root, in merge order.
PATTERN_FILES = (".gitignore", ".llmignore")

BUILTIN_EXCLUDES = (
    ".git/",
    "node_modules/",
    "dist/",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "bun.lockb",
    "poetry.lock",
    "uv.lock",
    "Cargo.lock",
    "Gemfile.lock",
    "composer.lock",
    "*.png",
    "*.jpg",
    "*.jpeg",
    "*.gif",
    "*.bmp",
    "*.ico",
    "*.webp",
    "*.tiff",
)

# Directories never descended into while walking.
PRUNED_DIRS = frozenset({".git", "node_modules"})

EXT2LANG: dict[str, str] = {
    ".ts": "ts",
    ".tsx": "ts",
    ".js": "js",
    ".cjs": "js",
    ".mjs": "js",
    ".jsx": "js",
    ".json": "json",
    ".md": "md",
    ".py": "py",
    ".java": "java",
    ".go": "go",
    ".rs": "rust",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".toml": "toml",
    ".sh": "bash",
    ".bash": "bash",
    ".sql": "sql",
    ".html": "html",
    ".css": "css",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".rb": "ruby",
    ".php": "php",
    ".xml": "xml",
}


class OutputFormat(StrEnum):
    """Document flavours the renderer can produce."""

    MARKDOWN = "markdown"
    XML = "xml"


_FORMAT_ALIASES: dict[str, OutputFormat] = {
    "markdown": OutputFormat.MARKDOWN,
    "md": OutputFormat.MARKDOWN,
    "xml": OutputFormat.XML,
}


class Persona(StrEnum):
    """Fixed reviewer roles whose preamble can open the document."""

    ARCHITECT = "architect"
    SECURITY = "security"
    REFACTOR = "refactor"

    @property
    def preamble(self) -> str:
        """Canonical preamble text for the persona."""
        return PERSONA_PREAMBLES[self]


PERSONA_ALIASES: dict[str, Persona] = {
    "arch": Persona.ARCHITECT,
    "sec": Persona.SECURITY,
    "ref": Persona.REFACTOR,
}

PERSONA_PREAMBLES: dict[Persona, str] = {
    Persona.ARCHITECT: (
        "You are a Senior Software Architect. Review this codebase for modularity, "
        "scalability, and adherence to SOLID principles."
    ),
    Persona.SECURITY: (
        "You are a Cyber Security Auditor. Scan this code for XSS, SQL injection, "
        "and insecure dependency patterns."
    ),
    Persona.REFACTOR: "You are a Clean Code Expert. Suggest ways to reduce complexity and improve readability.",
}


def parse_output_format(value: str | OutputFormat) -> OutputFormat:
    """Resolve a user-supplied format identifier.

    Args:
        value (str | OutputFormat): "markdown", "md" or "xml", case-insensitive.

    Raises:
        UnsupportedFormatError: if the value names no known format.

    Returns:
        OutputFormat: the resolved format.
    """
    key = str(value).strip().lower()
    try:
        return _FORMAT_ALIASES[key]
    except KeyError:
        raise UnsupportedFormatError(value=str(value)) from None


def parse_persona(value: str | Persona | None) -> Persona | None:
    """Resolve a persona from its canonical name or its short alias.

    Args:
        value (str | Persona | None): persona identifier; empty means no persona.

    Raises:
        UnknownPersonaError: if the value names no known persona.

    Returns:
        Persona | None: the resolved persona, or None when none was requested.
    """
    if value is None:
        return None
    key = str(value).strip().lower()
    if not key:
        return None
    if key in PERSONA_ALIASES:
        return PERSONA_ALIASES[key]
    try:
        return Persona(key)
    except ValueError:
        raise UnknownPersonaError(value=str(value)) from None


def guess_language(path: str) -> str:
    """Best-effort code fence language for a file path, "" when unknown."""
    return EXT2LANG.get(Path(path).suffix.lower(), "")


class ScannedFile(BaseModel):
    """A file discovered during a scan.

    Attributes:
        path: Root-relative path with forward slashes.
        absolute_path: Absolute path on disk (the resolved target for symlinks).
        size: File size in bytes.
        is_binary: Content sniffing found binary data.
        is_oversized: Text file larger than the inline threshold.
        content: Decoded text, present only for inlineable files.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Root-relative path, forward-slash separated")
    absolute_path: Path = Field(..., description="Absolute or resolved path")
    size: int = Field(..., ge=0, description="File size in bytes")
    is_binary: bool = False
    is_oversized: bool = False
    content: str | None = None

    @model_validator(mode="after")
    def _content_only_when_inlineable(self) -> ScannedFile:
        inlineable = not self.is_binary and not self.is_oversized
        if inlineable != (self.content is not None):
            msg = f"{self.path}: content must be present exactly when the file is inlineable"
            raise ValueError(msg)
        return self

    @property
    def is_inlineable(self) -> bool:
        """True when the file content is embedded in the document."""
        return self.content is not None


class FileTokenStat(BaseModel):
    """Token count of one file (0 for binary, oversized or empty files)."""

    model_config = ConfigDict(frozen=True)

    path: str
    tokens: int = Field(default=0, ge=0)


class HogEntry(BaseModel):
    """One line of the hotspot report; directory paths end with "/"."""

    model_config = ConfigDict(frozen=True)

    path: str
    tokens: int
    is_directory: bool = False


class ScanResult(BaseModel):
    """Outcome of a scan: path-sorted files plus the number of ignored paths."""

    model_config = ConfigDict(frozen=True)

    files: list[ScannedFile] = Field(default_factory=list)
    ignored_count: int = 0
