"""
Logging Utilities.

Configures loguru to render through Rich and provides timing helpers that log
Starting / Completed / Failed lines with a duration.
"""

import sys
import time
from contextlib import contextmanager
from functools import wraps
from typing import Any, Dict, Iterator, Optional

from loguru import logger
from rich.console import Console
from rich.logging import RichHandler

from stocksense.domain.exceptions import MalformedBarError

console = Console(stderr=True)


def configure_logging(level: str = "INFO", rich_output: bool = True) -> None:
    """
    Replace loguru's default sink.

    Args:
        level: Minimum level to emit.
        rich_output: Route through Rich (colours, aligned columns). When False
            a plain stderr sink is used, which is easier to grep in CI.
    """
    logger.remove()
    if rich_output:
        logger.add(
            RichHandler(console=console, show_path=False, markup=False),
            level=level.upper(),
            format="{message}",
        )
    else:
        logger.add(
            sys.stderr,
            level=level.upper(),
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}",
        )


def _format_context(context: Dict[str, Any]) -> str:
    return "".join(f" | {k}={v}" for k, v in context.items())


@contextmanager
def log_execution_time(operation: str, **context: Any) -> Iterator[None]:
    """
    Log Starting / Completed / Failed lines with a duration around a block.

    Args:
        operation: Name of the operation being timed.
        **context: Key/value pairs appended to every line (symbol, bars, ...).

    A failure is logged with its traceback and re-raised. ``MalformedBarError``
    is logged without the traceback since the message already names the bar.
    """
    suffix = _format_context(context)
    start = time.perf_counter()
    logger.info(f"Starting: {operation}{suffix}")

    try:
        yield
    except Exception as e:
        elapsed = time.perf_counter() - start
        msg = f"Failed: {operation} | duration={elapsed:.2f}s{suffix} | error={e}"
        if isinstance(e, MalformedBarError):
            logger.error(msg)
        else:
            logger.opt(exception=True).error(msg)
        raise

    elapsed = time.perf_counter() - start
    logger.info(f"Completed: {operation} | duration={elapsed:.2f}s{suffix}")


def timed(operation_name: Optional[str] = None):
    """Decorator form of ``log_execution_time``."""

    def decorator(func):
        op_name = operation_name or func.__name__

        @wraps(func)
        def wrapper(*args, **kwargs):
            with log_execution_time(op_name):
                return func(*args, **kwargs)

        return wrapper

    return decorator
