"""loguru setup shared by the CLI and scripts."""
from __future__ import annotations
import sys
from pathlib import Path

from loguru import logger

from oanda_stream.settings import LoggingSettings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}:{function}:{line}</cyan> - <level>{message}</level>"
)


def configure_logging(cfg: LoggingSettings | None = None) -> None:
    cfg = cfg or LoggingSettings()
    logger.remove()

    if cfg.format == "json":
        logger.add(sys.stderr, level=cfg.level, serialize=True)
    else:
        logger.add(sys.stderr, level=cfg.level, format=CONSOLE_FORMAT)

    if cfg.file_path:
        log_file = Path(cfg.file_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level=cfg.level,
            serialize=True,
            rotation=cfg.rotation,
            retention=cfg.retention,
        )
