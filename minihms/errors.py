import functools
from collections.abc import Callable
from pathlib import Path
from typing import Any, ParamSpec, TypeVar

from minihms.logging_config import get_logger


class MiniHmsError(Exception):
    """Base class for every failure raised by the mini HMS harness."""


class NotFoundError(MiniHmsError, FileNotFoundError):
    """A required dependency directory does not exist."""

    def __init__(self, env_var: str, path: Path):
        self.env_var = env_var
        self.path = path
        super().__init__(f"{env_var} directory does not exist: {path}")


class ConfigWriteError(MiniHmsError):
    """A generated configuration file could not be written."""


class SpawnError(MiniHmsError):
    """The metastore process could not be created, or died while starting."""


class SignalError(MiniHmsError):
    """A control signal could not be delivered, or the process could not be reaped."""


class StartTimeoutError(MiniHmsError, TimeoutError):
    """The metastore did not bind its port before the startup deadline."""


class PreconditionError(MiniHmsError):
    """An operation was invoked in a state that does not allow it."""


P = ParamSpec("P")
R = TypeVar("R")


def fail_gracefully(logger: Any | None = None) -> Callable[[Callable[P, R]], Callable[P, R | None]]:
    if logger is None:
        logger = get_logger(__name__)

    def decorator(f: Callable[P, R]):
        @functools.wraps(f)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R | None:
            try:
                return f(*args, **kwargs)
            except Exception as e:
                logger.exception("Swallowed error", function=f.__name__, error=str(e))
                return None

        return wrapper
    return decorator
