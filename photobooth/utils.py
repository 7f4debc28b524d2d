import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = '%(asctime)s | %(name)s | %(levelname)s | %(message)s'


def setup_rotating_logger(log_file: str, logger_name: str, level=logging.INFO, max_bytes=5*1024*1024, backup_count=5) -> logging.Logger:
    """
    Set up a rotating file logger.
    
    Args:
        log_file: Path to the log file. Its parent directory is created if missing.
        logger_name: Name of the logger.
        level: Logging level.
        max_bytes: Maximum size of a log file before rotation.
        backup_count: Number of backup log files to keep.
        
    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Re-running setup (app reload, tests) must not stack handlers on the same file
    for existing in logger.handlers:
        if isinstance(existing, RotatingFileHandler) and Path(existing.baseFilename) == log_path.resolve():
            return logger
    
    handler = RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count)
    formatter = logging.Formatter(LOG_FORMAT)
    handler.setFormatter(formatter)
    
    logger.addHandler(handler)
    return logger


def parse_log_level(level: str) -> int:
    """Map a settings string such as "info" or "DEBUG" to a logging level."""
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.INFO
