import logging

import pytest


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Give each test an unconfigured ``importgraph`` logger."""
    package_logger = logging.getLogger("importgraph")
    saved_handlers = list(package_logger.handlers)
    saved_level = package_logger.level
    package_logger.handlers = []
    yield
    for handler in package_logger.handlers:
        handler.close()
    package_logger.handlers = saved_handlers
    package_logger.setLevel(saved_level)
