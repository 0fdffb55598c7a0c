"""
Cortex Client Logging

Centralized logging configuration using loguru.

The library logs under the "cortexclient" name and is disabled by default,
so applications only see its records after calling setup_logging() or
logger.enable("cortexclient").
"""

import sys
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

LIBRARY_NAME = "cortexclient"

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"

# Handler ids added by this module (removed on re-setup)
_handler_ids: list = []


def _reset_handlers() -> None:
    while _handler_ids:
        handler_id = _handler_ids.pop()
        try:
            logger.remove(handler_id)
        except ValueError:
            pass


def setup_logging(
    console_level: str = "INFO",
    log_dir: Optional[Path] = None,
    file_level: str = "DEBUG",
) -> Optional[Path]:
    """
    Setup logging for a client session.

    When log_dir is given a per-session file is created:
    {log_dir}/cortex_{timestamp}.log, plus error.log for errors only.

    Args:
        console_level: Log level for console output
        log_dir: Directory for log files (None = console only)
        file_level: Log level for file output

    Returns:
        Path to the session log file, or None
    """
    _reset_handlers()
    logger.enable(LIBRARY_NAME)

    # Console handler - colored, concise
    _handler_ids.append(logger.add(
        sys.stderr,
        level=console_level,
        format=CONSOLE_FORMAT,
        colorize=True,
    ))

    if log_dir is None:
        return None

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"cortex_{timestamp}.log"

    _handler_ids.append(logger.add(
        log_file,
        level=file_level,
        format=FILE_FORMAT,
        rotation="50 MB",
        retention="7 days",
        encoding="utf-8",
    ))

    # Error log file - only errors and above
    _handler_ids.append(logger.add(
        log_dir / "error.log",
        level="ERROR",
        format=FILE_FORMAT,
        rotation="10 MB",
        encoding="utf-8",
    ))

    logger.info(f"Logging initialized: {log_file}")

    return log_file


def setup_console_only(level: str = "INFO"):
    """
    Setup console-only logging.

    Args:
        level: Log level
    """
    setup_logging(console_level=level)


def get_analyzer_logger(analyzer: str):
    """Get a logger bound to one analyzer (record["extra"]["analyzer"])"""
    return logger.bind(analyzer=analyzer)


def create_run_summary(observable: str, outcomes: Iterable, elapsed_seconds: float = 0) -> str:
    """
    Create a formatted multi-analyzer run summary box.

    Args:
        observable: Observable description (data or file name)
        outcomes: Outcome objects collected from the run
        elapsed_seconds: Time elapsed

    Returns:
        Formatted summary string
    """
    outcomes = list(outcomes)
    succeeded = sum(1 for o in outcomes if o.ok)
    width = 70

    lines = []
    lines.append("")
    lines.append("┌" + "─" * width + "┐")
    lines.append("│" + " ANALYSIS SUMMARY ".center(width) + "│")
    lines.append("├" + "─" * width + "┤")
    lines.append("│" + f"  Observable:   {observable[:50]}".ljust(width) + "│")
    lines.append("│" + f"  Analyzers:    {succeeded}/{len(outcomes)} succeeded".ljust(width) + "│")
    lines.append("│" + f"  Elapsed:      {elapsed_seconds:.1f}s".ljust(width) + "│")
    lines.append("├" + "─" * width + "┤")

    for outcome in outcomes:
        status_icon = "✓" if outcome.ok else "✗"
        detail = outcome.summary()
        detail = detail[:45] + "..." if len(detail) > 45 else detail
        name = outcome.analyzer.name[:18]
        lines.append("│" + f"  {status_icon} {name:<18} {detail}".ljust(width) + "│")

    lines.append("└" + "─" * width + "┘")
    lines.append("")

    return "\n".join(lines)
