import logging
import logging.handlers
from pathlib import Path
from typing import Optional

DEFAULT_LOG_DIR = Path(__file__).parent.parent / "logs"
LOG_FILE_NAME = "draft_points.log"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[Path] = DEFAULT_LOG_DIR,
) -> logging.Logger:
    """Configure root logging for ingestion and points recomputation.

    Console output honours *log_level*; the rotating file under *log_dir*
    (5MB x 3) always records DEBUG so per-batch detail of a long pass is
    kept. Pass ``log_dir=None`` for console only. Calling again once
    handlers exist is a no-op.
    """
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return root_logger

    level = getattr(logging, log_level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / LOG_FILE_NAME, maxBytes=5 * 1024 * 1024, backupCount=3
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        root_logger.setLevel(logging.DEBUG)
    else:
        root_logger.setLevel(level)

    logging.getLogger(__name__).info(
        "Logging initialized (level=%s, file=%s)",
        log_level, log_dir / LOG_FILE_NAME if log_dir is not None else "none",
    )
    return root_logger
