import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from epistle import logging as epistle_logging


@pytest.fixture
def root_handlers(monkeypatch: pytest.MonkeyPatch) -> Iterator[logging.Logger]:
    root = logging.getLogger()
    saved = list(root.handlers)
    level = root.level
    monkeypatch.setattr(epistle_logging, "_LOGGING_CONFIGURED", False)
    yield root
    for handler in list(root.handlers):
        if handler not in saved and isinstance(handler, (logging.FileHandler, logging.NullHandler)):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


@pytest.mark.unit
def test_setup_keeps_existing_root_handlers(root_handlers: logging.Logger) -> None:
    host = logging.NullHandler()
    root_handlers.addHandler(host)

    epistle_logging.setup_logging()

    assert host in root_handlers.handlers


@pytest.mark.unit
def test_log_file_reroutes_records(root_handlers: logging.Logger, tmp_path: Path) -> None:
    host = logging.NullHandler()
    root_handlers.addHandler(host)
    log_file = tmp_path / "epistle.log"

    log = epistle_logging.setup_logging(log_file)
    log.info("scan_complete", files=3)

    assert host not in root_handlers.handlers
    assert '"event": "scan_complete"' in log_file.read_text(encoding="utf-8")
