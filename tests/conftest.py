import pytest
from loguru import logger


@pytest.fixture(autouse=True)
def _reset_loguru():
    # configure_logging() binds handlers to the captured stderr of the current test
    yield
    logger.remove()
