import logging
import logging.handlers
from datetime import datetime
from pathlib import Path


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter, max_mb: int = 5, backups: int = 3):
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_mb*1024*1024,
        backupCount=backups,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(level: str = "INFO", logs_dir: Path = Path("logs")):
    """
    Configure logging for the billing service.
    Console plus rotating files: app.log, sync.log, scheduler.log and errors.log.
    """
    logs_dir.mkdir(exist_ok=True)

    log_format = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    root_level = logging.getLevelName(level.upper())
    if not isinstance(root_level, int):
        root_level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)
    root_logger.handlers.clear()

    # Console handler (for Docker logs)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(root_level)
    console_handler.setFormatter(log_format)
    root_logger.addHandler(console_handler)

    root_logger.addHandler(_rotating_handler(logs_dir / "app.log", root_level, log_format, max_mb=10, backups=5))

    # Sync run details (per-row writes are logged at DEBUG)
    sync_file_handler = _rotating_handler(logs_dir / "sync.log", logging.DEBUG, log_format)
    for name in ('app.services.sync_service', 'app.services.time_log_service', 'app.services.clickup_service'):
        component_logger = logging.getLogger(name)
        component_logger.handlers.clear()
        component_logger.addHandler(sync_file_handler)
        component_logger.setLevel(logging.DEBUG)

    scheduler_logger = logging.getLogger('app.utils.scheduler')
    scheduler_logger.handlers.clear()
    scheduler_logger.addHandler(_rotating_handler(logs_dir / "scheduler.log", logging.DEBUG, log_format))
    scheduler_logger.setLevel(logging.DEBUG)

    # Error-only log file for critical issues
    root_logger.addHandler(_rotating_handler(logs_dir / "errors.log", logging.ERROR, log_format, backups=5))

    # Suppress noisy third-party loggers
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('requests').setLevel(logging.WARNING)
    logging.getLogger('apscheduler').setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info("Logging configuration completed")
    logger.info(f"Log files will be saved to: {logs_dir.absolute()}")

    return logs_dir


def get_log_files_info(logs_dir: Path = Path("logs")):
    """
    Get information about current log files for debugging.
    """
    if not logs_dir.exists():
        return {"status": "No logs directory found"}

    log_files = {}
    for log_file in logs_dir.glob("*.log"):
        try:
            stat = log_file.stat()
            log_files[log_file.name] = {
                "size_mb": round(stat.st_size / (1024*1024), 2),
                "modified": datetime.fromtimestamp(stat.st_mtime).strftime("%Y-%m-%d %H:%M:%S")
            }
        except OSError as e:
            log_files[log_file.name] = {"error": str(e)}

    return log_files
