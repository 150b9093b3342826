"""Utility modules."""

from .config import TrainingConfig, get_config, load_config
from .logger import setup_logger, get_logger

__all__ = ['TrainingConfig', 'get_config', 'load_config', 'setup_logger', 'get_logger']
