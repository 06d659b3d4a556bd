# -*- coding: utf-8 -*-
########################
# logging_setup.py
########################
# Purpose:
# - Configure the root logger once for the tjaplay CLI.
#
# Design notes:
# - Level priority, highest first: TJAPLAY_LOG_LEVEL, --debug, --quiet, config logging.level, INFO.
# - A root logger that already has handlers is left alone, so embedding hosts and test runners
#   keep their own configuration.
#
########################
# Interfaces:
# Public functions:
# - resolve_log_level(args=None, *, config_level: Optional[str] = None) -> int
# - setup_logging(args=None, *, config_level: Optional[str] = None, name: str = "tjaplay") -> None
#
# Inputs:
# - argparse.Namespace (or any object) with optional quiet and debug attributes.
#
########################

from __future__ import annotations

import logging
import os
from typing import Any, Optional


LOG_LEVEL_ENV = "TJAPLAY_LOG_LEVEL"

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

_LEVEL_NAMES = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def _level_from_name(level_name: Optional[str]) -> Optional[int]:
    if not level_name:
        return None
    return _LEVEL_NAMES.get(str(level_name).strip().upper())


def resolve_log_level(args: Any = None, *, config_level: Optional[str] = None) -> int:
    env_level = _level_from_name(os.environ.get(LOG_LEVEL_ENV))
    if env_level is not None:
        return env_level
    if getattr(args, "debug", False):
        return logging.DEBUG
    if getattr(args, "quiet", False):
        return logging.WARNING
    configured_level = _level_from_name(config_level)
    if configured_level is not None:
        return configured_level
    return logging.INFO


def setup_logging(args: Any = None, *, config_level: Optional[str] = None, name: str = "tjaplay") -> None:
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    level = resolve_log_level(args, config_level=config_level)
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    logging.getLogger(name).debug("logging initialized at %s", logging.getLevelName(level))
