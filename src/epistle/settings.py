from __future__ import annotations

import os
from pathlib import Path

from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field

from epistle.config import DEFAULT_MAX_FILE_SIZE_BYTES

ENV_FILE = find_dotenv(usecwd=True)
ENV_PREFIX = "EPISTLE_"
DEFAULT_TOKEN_BUDGET = 50_000


def env_default(name: str, fallback: str = "") -> str:
    """Look up an `EPISTLE_*` default, the process environment winning over `.env`.

    Args:
        name (str): variable name without the prefix
        fallback (str): value used when neither source defines it

    Returns:
        str: the configured value
    """
    key = ENV_PREFIX + name
    if key in os.environ:
        return os.environ[key]
    values = dotenv_values(ENV_FILE) if ENV_FILE else {}
    return values.get(key) or fallback


class Settings(BaseModel):
    """Configuration settings for an epistle run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    root: Path = Field(default_factory=Path.cwd, description="Directory to pack.")
    output: Path | None = Field(default=None, description="Output file; stdout when unset.")
    format: str = Field(default="markdown", description="Output format: markdown or xml.")
    persona: str = Field(default="", description="Reviewer persona: architect, security, refactor.")
    task: str = Field(default="", description="Task appended at the end of the document.")
    exclude: list[str] = Field(default_factory=list, description="Extra exclude patterns.")
    include: list[str] = Field(default_factory=list, description="Force-include patterns.")
    max_file_size: int = Field(
        default=DEFAULT_MAX_FILE_SIZE_BYTES,
        ge=0,
        description="Text files above are listed but not inlined.",
    )
    hog: str = Field(default="auto", description="Hog report mode: files, dirs or auto.")
    hog_depth: int | None = Field(default=None, ge=1, description="Directory depth for the dirs hog mode.")
    token_budget: int = Field(
        default=DEFAULT_TOKEN_BUDGET,
        ge=0,
        description="Warn when the total token count exceeds this.",
    )
    log_file: str = Field(default="", description="Log file path.")
