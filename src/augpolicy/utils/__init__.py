"""Utility functions."""

from augpolicy.utils.config import OperatorConfig, load_config
from augpolicy.utils.locks import ReadWriteLock
from augpolicy.utils.logging import setup_logging

__all__ = ["OperatorConfig", "ReadWriteLock", "load_config", "setup_logging"]
