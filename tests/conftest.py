import logging

import pytest


@pytest.fixture(autouse=True)
def reset_package_logger():
    """CLI main() 會接上 console handler；每個測試後還原，caplog 才收得到紀錄."""
    yield
    logger = logging.getLogger("design_sync")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
