import logging

import pytest
from compare_energy.log import ROOT_LOGGER


@pytest.fixture(autouse=True)
def _restore_package_logger():
    """Undo configure_logging() side effects so logger state doesn't leak between tests."""
    logger = logging.getLogger(ROOT_LOGGER)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
