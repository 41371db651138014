"""Loguru logging configuration.

Human-readable records go to stderr.  Resolution outcomes are bound with
``json_output=True`` and carry structured extras (step, source, confidence,
coordinates); those records are additionally emitted as JSON so they can be
collected without parsing the human format.  With ``json_logs`` every record
is serialized instead.  A rotating log file is added when ``log_dir`` is set.
"""

import sys
from pathlib import Path

from loguru import logger

_LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} | {message}"

LOG_FILE_NAME = "ph-locator.log"


def _is_structured(record: dict) -> bool:
    return bool(record["extra"].get("json_output", False))


def setup_logging(log_level: str = "INFO", log_dir: str | None = None, *, json_logs: bool = False) -> None:
    """Configure Loguru sinks.

    Args:
        log_level: Minimum log level to emit.
        log_dir: Optional directory for log files.  When set, a rotating
            file sink is added (rotated every 24 hours, retained 7 days).
        json_logs: Serialize every stderr record as JSON instead of the
            human format.
    """
    level = log_level.upper()
    logger.remove()

    if json_logs:
        logger.add(sys.stderr, level=level, serialize=True)
    else:
        logger.add(sys.stderr, level=level, format=_LOG_FORMAT)
        logger.add(sys.stderr, level=level, serialize=True, filter=_is_structured)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path / LOG_FILE_NAME,
            level=level,
            format=_LOG_FORMAT,
            rotation="24h",
            retention="7 days",
        )
