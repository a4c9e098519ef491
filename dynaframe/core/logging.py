"""
Logging for the query and upload engine.

Every module logs through ``get_logger(__name__)``.  Loggers keep propagating
to the root logger so pytest's ``caplog`` can observe them.  The AWS SDK's
own loggers are held at WARNING so a DEBUG run shows engine events, not
HTTP wire chatter.
"""
from __future__ import annotations

import logging
import sys

from dynaframe.core.config import get_settings

_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_SDK_LOGGERS = ("boto3", "botocore", "urllib3")
_sdk_quieted = False


def _quiet_sdk_loggers() -> None:
    global _sdk_quieted
    if _sdk_quieted:
        return
    for name in _SDK_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _sdk_quieted = True


def get_logger(name: str) -> logging.Logger:
    """Return a stdout logger for ``name`` at the configured ``LOG_LEVEL``."""
    _quiet_sdk_loggers()
    level = getattr(logging, get_settings().log_level.upper(), logging.INFO)
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger
