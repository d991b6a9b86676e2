from __future__ import annotations

import sys
from typing import Optional

from loguru import logger

from directory_api.core.config import settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(level: Optional[str] = None) -> None:
    """
    Replace loguru's default sink with one stderr sink at the configured level.
    Safe to call more than once (e.g. one app per test).
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or settings.LOG_LEVEL).strip().upper(),
        format=LOG_FORMAT,
        backtrace=False,
        diagnose=False,
    )
