__version__ = "0.3.0"

from .config import SortServiceSettings
from .loggers import logger
from .service import SortService
from .sort import PathStrategy, SortLoop

__all__ = [
    "logger",
    "PathStrategy",
    "SortLoop",
    "SortService",
    "SortServiceSettings",
]
