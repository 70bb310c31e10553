from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import pytest

import depaudit.logging as depaudit_logging
from depaudit.parsing.provider import SyntaxProvider
from tests._fixtures.project_builder import ProjectBuilder


def _reset_depaudit_logger() -> None:
    logger = logging.getLogger(depaudit_logging.ROOT_LOGGER)
    for handler in list(logger.handlers):
        if handler in depaudit_logging._installed:
            logger.removeHandler(handler)
            handler.close()
    depaudit_logging._installed.clear()


@pytest.fixture(autouse=True)
def _isolate_depaudit_logging() -> Iterator[None]:
    """Drop handlers installed by configure_logging so tests don't leak them."""
    _reset_depaudit_logger()
    yield
    _reset_depaudit_logger()


@pytest.fixture
def project_builder(tmp_path: Path) -> ProjectBuilder:
    """Provide a reusable workspace builder rooted at the pytest tmp_path."""
    return ProjectBuilder(tmp_path)


@pytest.fixture(scope="session")
def syntax() -> SyntaxProvider:
    return SyntaxProvider()
