"""
Logging setup for hybrid_slam.

Library modules only call logging.getLogger(__name__); applications and
test harnesses call configure_logging() once, typically with the loaded
HybridParams.
"""

import logging
import os
import sys
from typing import Optional, Union

from hybrid_slam.common import constants
from hybrid_slam.common.param_models import HybridParams

LOG_FORMAT = "%(levelname)s | %(name)s | %(message)s"


def configure_logging(level: Optional[Union[str, HybridParams]] = None) -> logging.Logger:
    """
    Configure the hybrid_slam logger with a console handler.

    level may be a level name or a HybridParams (its log_level is used).
    Level resolution: explicit argument, then $HYBRID_SLAM_LOG_LEVEL, then INFO.
    Returns the package logger.
    """
    if isinstance(level, HybridParams):
        level = level.log_level
    level = (level or os.getenv(constants.LOG_LEVEL_ENV_VAR, constants.LOG_LEVEL_DEFAULT)).upper()
    level_value = getattr(logging, level, logging.INFO)

    logger = logging.getLogger("hybrid_slam")
    logger.setLevel(level_value)
    # Avoid duplicate handlers when called twice
    for h in list(logger.handlers):
        logger.removeHandler(h)
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level_value)
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console)
    return logger
