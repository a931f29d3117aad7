from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class EpistleError(Exception):
    """Base exception for errors in the epistle package."""

    def __str__(self) -> str:
        return getattr(self, "message", "") or self.__class__.__name__


@dataclass(frozen=True)
class ScanError(EpistleError):
    """Raised when an I/O error aborts a scan; no partial file list survives it."""

    path: Path
    reason: str

    @property
    def message(self) -> str:
        return f"Failed to scan {self.path}: {self.reason}"


@dataclass(frozen=True)
class UnsupportedFormatError(EpistleError):
    """Raised when the requested output format is neither markdown nor xml."""

    value: str

    @property
    def message(self) -> str:
        return f'Invalid format value "{self.value}". Supported values are "markdown" and "xml".'


@dataclass(frozen=True)
class UnknownPersonaError(EpistleError):
    """Raised when the requested persona is not one of the known reviewer roles."""

    value: str

    @property
    def message(self) -> str:
        return f'Invalid persona value "{self.value}". Supported values are "architect", "security", "refactor".'


@dataclass(frozen=True)
class TokenizerUnavailableError(EpistleError):
    """Raised when the tokenizer profile cannot be loaded."""

    model: str
    reason: str

    @property
    def message(self) -> str:
        return f"Tokenizer for {self.model} is unavailable: {self.reason}"
