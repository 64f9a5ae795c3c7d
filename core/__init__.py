# Core package for configuration, logging and security

from .config import settings
from .logging import setup_logging, get_logger
