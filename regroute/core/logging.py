"""Logging setup for the regroute command line."""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterable, Mapping
from typing import TextIO

from loguru import logger

PACKAGE_NAME = "regroute"
PLAIN_LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{name}:{function}:{line} - {message}"
)
COLOR_LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def _scope_matches(record_name: str, scope: str) -> bool:
    if record_name.startswith(scope):
        return True
    return not scope.startswith(f"{PACKAGE_NAME}.") and record_name.startswith(
        f"{PACKAGE_NAME}.{scope}"
    )


def debug_scope_filter(scopes: tuple[str, ...]) -> Callable[[object], bool]:
    """Pass DEBUG records from the named modules only.

    ``provider.builder`` and ``regroute.provider.builder`` name the same scope.
    """

    def _filter(record: object) -> bool:
        if not isinstance(record, Mapping):
            return False
        if getattr(record.get("level"), "name", None) != "DEBUG":
            return False
        record_name = str(record.get("name") or "")
        return any(_scope_matches(record_name, scope) for scope in scopes)

    return _filter


def configure_logging(
    level: str,
    *,
    debug_scopes: Iterable[str] = (),
    colorize: bool = False,
    sink: TextIO | None = None,
) -> tuple[int, ...]:
    """Replace loguru handlers with one stderr handler at ``level``."""
    logger.remove()
    target = sink if sink is not None else sys.stderr
    log_format = COLOR_LOG_FORMAT if colorize else PLAIN_LOG_FORMAT
    handler_ids = [
        logger.add(target, level=level.upper(), format=log_format, colorize=colorize)
    ]

    scopes = tuple(scope.strip() for scope in debug_scopes if scope.strip())
    if scopes and level.upper() != "DEBUG":
        handler_ids.append(
            logger.add(
                target,
                level="DEBUG",
                format=log_format,
                colorize=colorize,
                filter=debug_scope_filter(scopes),
            )
        )
    return tuple(handler_ids)
