from .health import health
from .json_logging import JsonFormatter, init_logging

__all__ = ["health", "JsonFormatter", "init_logging"]
