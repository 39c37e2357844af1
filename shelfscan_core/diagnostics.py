from typing import Dict
import logging
import os


_LOGGER_CACHE: Dict[str, logging.Logger] = {}

_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def get_logger(name: str) -> logging.Logger:
    """Return a configured logger.

    Respects SHELFSCAN_DEBUG env var to set DEBUG/INFO level.
    Ensures we don't duplicate handlers across multiple imports.
    """
    lg = _LOGGER_CACHE.get(name)
    if lg:
        return lg
    lg = logging.getLogger(name)
    if not lg.handlers:
        level = logging.DEBUG if str(os.getenv("SHELFSCAN_DEBUG", "false")).lower() == "true" else logging.INFO
        lg.setLevel(level)
        handler = logging.StreamHandler()
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(_FORMAT))
        lg.addHandler(handler)
        lg.propagate = False
    _LOGGER_CACHE[name] = lg
    return lg


def enable_diagnostics(level: str = "INFO"):
    """
    Enable diagnostics logging for the whole package

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    numeric = getattr(logging, level.upper())
    logging.basicConfig(level=numeric, format=_FORMAT)
    logging.getLogger("shelfscan_core").setLevel(numeric)
    for lg in _LOGGER_CACHE.values():
        lg.setLevel(numeric)
        for handler in lg.handlers:
            handler.setLevel(numeric)
