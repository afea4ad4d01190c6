"""Loguru sinks for an autocrew process.

Library code only ever calls ``logger``; sinks are the embedding app's
choice. :class:`~autocrew.orchestrator.Orchestrator` calls
:func:`setup_logging` from the ``logging`` config section when constructed
with ``configure_logging=True``.
"""

import sys

from loguru import logger


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    fmt: str = "<level>[{level.name}]</level> {message}",
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """Replace loguru's sinks with stderr plus, when *log_file* is set, a rotating file.

    The file sink records module and function so a workflow run can be
    traced phase by phase; *rotation* and *retention* apply to it only.
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=fmt)

    if log_file:
        logger.add(
            log_file,
            level=level.upper(),
            format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function} | {message}",
            rotation=rotation,
            retention=retention,
        )
