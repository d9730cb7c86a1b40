"""
Helpers for turning exceptions into log lines and client-facing messages.
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


def _safe_get_exceptions(exception_group) -> list:
    try:
        return list(exception_group.exceptions)
    except Exception:
        return []


def format_exception_message(exception: Exception) -> str:
    """
    Format an exception message for a client-facing error body.

    httpx raises several transport errors (notably timeouts) with an empty
    message; those fall back to the exception type name. Exception groups are
    flattened into "<message> (Sub-exceptions: ...)".

    Args:
        exception: The exception to format

    Returns:
        A non-empty string describing the exception
    """
    if exception is None:
        return "None"

    message = _safe_str(exception) or type(exception).__name__

    sub_exceptions = []
    if hasattr(exception, "exceptions"):
        sub_exceptions = _safe_get_exceptions(exception)
    if not sub_exceptions:
        return message

    parts = [
        f"{type(sub_exc).__name__}: {format_exception_message(sub_exc)}"
        for sub_exc in sub_exceptions
    ]
    return f"{message} (Sub-exceptions: {'; '.join(parts)})"


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Exception,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception, including each sub-exception of an exception group.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Proxy]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    sub_exceptions = []
    if exception is not None and hasattr(exception, "exceptions"):
        sub_exceptions = _safe_get_exceptions(exception)

    if not sub_exceptions:
        logger.log(
            level,
            f"{prefix} Exception: {format_exception_message(exception)}",
            exc_info=exception if exception is not None else False,
        )
        return

    logger.log(
        level,
        f"{prefix} Exception with {len(sub_exceptions)} sub-exceptions: {_safe_str(exception)}",
    )
    for i, sub_exc in enumerate(sub_exceptions):
        logger.log(
            level,
            f"{prefix} Sub-exception {i+1}: {type(sub_exc).__name__}: {_safe_str(sub_exc)}",
            exc_info=sub_exc,
        )
