from pathlib import Path

import pytest

from epistle import settings as settings_module
from epistle.settings import DEFAULT_TOKEN_BUDGET, Settings, env_default


@pytest.mark.unit
def test_settings_defaults() -> None:
    settings = Settings()

    assert settings.root.resolve() == Path.cwd().resolve()
    assert settings.output is None
    assert settings.format == "markdown"
    assert settings.max_file_size == 100 * 1024
    assert settings.hog == "auto"
    assert settings.token_budget == DEFAULT_TOKEN_BUDGET


@pytest.mark.unit
def test_env_default_prefers_process_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EPISTLE_LOG_FILE", "run.log")

    assert env_default("LOG_FILE") == "run.log"


@pytest.mark.unit
def test_env_default_reads_dotenv_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("EPISTLE_TOKEN_BUDGET=1234\n", encoding="utf-8")
    monkeypatch.delenv("EPISTLE_TOKEN_BUDGET", raising=False)
    monkeypatch.setattr(settings_module, "ENV_FILE", str(env_file))

    assert env_default("TOKEN_BUDGET", "0") == "1234"
    assert env_default("MISSING", "fallback") == "fallback"
