from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


import pytest
from loguru import logger
from PySide6.QtCore import QCoreApplication

from tests.lsp_helpers import FakeTransport


@pytest.fixture(scope="session")
def qapp() -> QCoreApplication:
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([sys.argv[0]])
    return app


@pytest.fixture
def transport(qapp: QCoreApplication) -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def log_records():
    records: list[dict] = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG", format="{message}")
    try:
        yield records
    finally:
        logger.remove(handler_id)
