"""Logging configuration for the workspace daemon"""

import logging
from pathlib import Path
from logging.handlers import TimedRotatingFileHandler


class ProjectOnlyFilter(logging.Filter):
    """Filter to only allow logs from remote_workspace.* modules"""

    def filter(self, record):
        """Filter out third-party modules

        Args:
            record: Log record to filter

        Returns:
            True if the record is from remote_workspace.* modules, False otherwise
        """
        return record.name.startswith('remote_workspace.')


def setup_logging(log_dir: Path | None = None, level: str = "INFO") -> None:
    """Setup logging configuration for the daemon

    Console output is always enabled at ``level``. When ``log_dir`` is given,
    three rotating files are written there as well:
    - debug.log: DEBUG+ logs from remote_workspace.* modules only
    - info.log: INFO+ logs from all modules
    - error.log: ERROR+ logs from all modules

    Files are rotated daily at midnight, keeping 30 days of history.

    Args:
        log_dir: Directory for log files, or None for console only
        level: Console log level name (e.g. "INFO", "DEBUG")
    """
    log_format = '%(asctime)s.%(msecs)03d - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
    date_format = '%Y-%m-%d %H:%M:%S'
    formatter = logging.Formatter(log_format, datefmt=date_format)

    console_level = logging.getLevelName(level.upper())
    if not isinstance(console_level, int):
        console_level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Clear existing handlers to avoid duplicate logs
    root_logger.handlers.clear()

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)

        # ==================== DEBUG Handler ====================
        debug_handler = TimedRotatingFileHandler(
            filename=log_dir / "debug.log",
            when='midnight',
            interval=1,
            backupCount=30,
            encoding='utf-8'
        )
        debug_handler.setLevel(logging.DEBUG)
        debug_handler.setFormatter(formatter)
        debug_handler.addFilter(ProjectOnlyFilter())
        root_logger.addHandler(debug_handler)

        # ==================== INFO Handler ====================
        info_handler = TimedRotatingFileHandler(
            filename=log_dir / "info.log",
            when='midnight',
            interval=1,
            backupCount=30,
            encoding='utf-8'
        )
        info_handler.setLevel(logging.INFO)
        info_handler.setFormatter(formatter)
        root_logger.addHandler(info_handler)

        # ==================== ERROR Handler ====================
        error_handler = TimedRotatingFileHandler(
            filename=log_dir / "error.log",
            when='midnight',
            interval=1,
            backupCount=30,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        root_logger.addHandler(error_handler)

    # ==================== Console Handler ====================
    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    logger = logging.getLogger(__name__)
    if log_dir is not None:
        logger.info(f"Logging initialized: log_dir={log_dir}, level={level}")
    else:
        logger.info(f"Logging initialized: console only, level={level}")
