from __future__ import annotations

import io
import logging

import pytest

from helpers.bags import Bag, DoublingAdd, ListBag
from layercake import build
from layercake.core.stdlib_logging import PACKAGE_LOGGER, configure_logging


def test_configure_logging_does_not_stack_handlers() -> None:
    stream = io.StringIO()
    logger = configure_logging("DEBUG", stream=stream)
    configure_logging("DEBUG", stream=stream)
    streams = [h for h in logger.handlers if isinstance(h, logging.StreamHandler)]
    assert len(streams) == 1
    assert any(isinstance(h, logging.NullHandler) for h in logger.handlers)
    build(ListBag(), Bag, [DoublingAdd])
    assert "Applied layer 0: DoublingAdd" in stream.getvalue()


def test_level_defaults_to_configuration(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LAYERCAKE_LOGGING__LEVEL", "ERROR")
    logger = configure_logging(stream=io.StringIO())
    assert logger.level == logging.ERROR


def test_build_emits_debug_records(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger=PACKAGE_LOGGER):
        build(ListBag(), Bag, [DoublingAdd])
    messages = [r.getMessage() for r in caplog.records]
    assert any(m.startswith("Building Bag with 1 layer(s)") for m in messages)
    assert any("via constructor 'inner'" in m for m in messages)
