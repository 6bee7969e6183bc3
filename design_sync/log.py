"""Logging helpers — design_sync 的 logger 階層與 CLI 輸出設定."""

from __future__ import annotations

import logging

_LOGGER_NAME = "design_sync"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the design_sync hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(*, verbose: bool = False) -> logging.Logger:
    """Attach a console handler to the package logger (CLI only)."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # 重複呼叫時避免 handler 疊加
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("   [design-sync] %(levelname)s %(message)s"))
    logger.addHandler(handler)
    return logger


__all__ = ["configure_logging", "get_logger"]
