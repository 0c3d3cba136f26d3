"""
Utility functions for logging upstream and transport exceptions.
"""

import logging


def _safe_str(obj) -> str:
    """
    Safely convert an object to string, handling cases where __str__ or __repr__ might fail.
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def error_code(exception: Exception) -> str:
    """
    Short identifier for an exception, suitable for logs and span attributes.

    Uses the exception class name and, when the failure came from the OS
    (connection refused, DNS lookup), the errno found along the cause chain.

    Args:
        exception: The exception to describe

    Returns:
        e.g. ``"ConnectError"`` or ``"ConnectError[errno=111]"``
    """
    if exception is None:
        return "None"
    name = type(exception).__name__
    seen = set()
    current = exception
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        errno = getattr(current, "errno", None)
        if isinstance(errno, int):
            return f"{name}[errno={errno}]"
        current = current.__cause__ or current.__context__
    return name


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Exception,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception together with its error code.
    This function is designed to never throw exceptions itself, even when dealing with
    broken exception objects or logger failures.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Proxy]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    try:
        message = f"{prefix} {error_code(exception)}: {format_exception_message(exception)}"
        try:
            logger.log(
                level,
                message,
                exc_info=exception if exception is not None else False,
            )
        except Exception:
            # If logging with exc_info fails, try without it
            logger.log(level, message)
    except Exception:
        try:
            if logger is not None:
                logger.log(logging.ERROR, "Exception logging failed")
        except Exception:
            pass


def format_exception_message(exception: Exception) -> str:
    """
    Format an exception message, falling back to the type name when the
    exception carries no text (httpx transport errors often do not).
    """
    try:
        if exception is None:
            return "None"
        text = _safe_str(exception)
        return text or type(exception).__name__
    except Exception:
        return "<exception (formatting failed)>"
