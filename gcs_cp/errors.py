from __future__ import annotations
import logging
import functools
from typing import Type, Callable, Any


class GcsCpError(Exception):
    category = "CommandException"


class ConfigError(GcsCpError):
    category = "ConfigError"


class InvalidUriError(ConfigError): pass


class ListingError(GcsCpError):
    category = "ListingError"


class EmptyResultError(GcsCpError):
    category = "EmptyResultError"


class PathSafetyError(GcsCpError):
    category = "PathSafetyError"


class FilesystemError(GcsCpError):
    category = "IOError"


class DownloadError(GcsCpError):
    """Failure while fetching one object; `stage` is open_reader, create_file or copy."""

    category = "DownloadError"

    def __init__(self, key: str, stage: str, cause: Any):
        self.key = key
        self.stage = stage
        super().__init__(f"{stage} {key!r}: {cause}")


def setup_logging(level: int = logging.INFO, logfile: str | None = None) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):  # avoid duplicate handlers
        root.removeHandler(h)
    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    stream = logging.StreamHandler()
    stream.setFormatter(fmt)
    root.addHandler(stream)
    if logfile:
        fh = logging.FileHandler(logfile)
        fh.setFormatter(fmt)
        root.addHandler(fh)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_and_reraise(exception_cls: Type[Exception] = GcsCpError, level: int = logging.ERROR):
    def deco(func: Callable[..., Any]):
        @functools.wraps(func)
        def wrapper(*a, **kw):
            try:
                return func(*a, **kw)
            except Exception as e:
                logging.getLogger(func.__module__).log(level, "%s failed: %s", func.__name__, e)
                raise exception_cls(f"{func.__name__} failed: {e}") from e
        return wrapper
    return deco
