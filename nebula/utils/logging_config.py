import logging
import logging.config
import os
from pathlib import Path
from typing import Any, Dict, List

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Logger name -> handlers. "app" covers routers and managers, "audit" facilitator writes.
_NAMED_LOGGERS: Dict[str, List[str]] = {
    "app": ["console", "app_file", "error_file"],
    "nebula": ["console", "app_file", "error_file"],
    "database": ["console", "app_file", "error_file"],
    "audit": ["console", "app_file"],
    "fastapi": ["console", "app_file"],
    "uvicorn": ["console", "app_file"],
    "uvicorn.access": ["console", "app_file"],
    "uvicorn.error": ["console", "error_file"],
}


def _prune_backups(log_dir: Path, base_name: str, keep: int) -> None:
    """Delete rotated files beyond ``keep``, oldest first."""
    rotated = sorted(
        log_dir.glob(f"{base_name}.*"), key=lambda path: path.stat().st_mtime, reverse=True
    )
    for stale in rotated[max(keep, 0):]:
        try:
            stale.unlink()
        except OSError:
            logging.getLogger("app").debug("Could not remove old log %s", stale)


def _rotating_handler(path: Path, level: str, max_bytes: int, backup_count: int) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": "default",
        "filename": str(path),
        "maxBytes": max_bytes,
        "backupCount": backup_count,
        "level": level,
        "encoding": "utf8",
    }


def setup_logging():
    """
    Configure console and rotating file logging for the workshop server.

    Files go to NEBULA_LOG_DIR (default ``logs/``) as app.log and error.log. LOG_LEVEL,
    LOG_MAX_BYTES and LOG_BACKUP_COUNT tune verbosity and rotation.
    """
    log_dir = Path(os.getenv("NEBULA_LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    max_bytes = int(os.getenv("LOG_MAX_BYTES", str(5 * 1024 * 1024)))
    backup_count = int(os.getenv("LOG_BACKUP_COUNT", "3"))
    for name in ("app.log", "error.log"):
        _prune_backups(log_dir, name, backup_count)

    loggers: Dict[str, Dict[str, Any]] = {
        name: {"handlers": handlers, "level": level, "propagate": False}
        for name, handlers in _NAMED_LOGGERS.items()
    }
    loggers[""] = {"handlers": ["console", "app_file", "error_file"], "level": level}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": LOG_FORMAT}},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "level": level,
                },
                "app_file": _rotating_handler(log_dir / "app.log", level, max_bytes, backup_count),
                "error_file": _rotating_handler(
                    log_dir / "error.log", "ERROR", max_bytes, backup_count
                ),
            },
            "loggers": loggers,
        }
    )
    logging.getLogger("app").info("Logging configured (level=%s, dir=%s)", level, log_dir)
