from pathlib import Path
import sys
from typing import Optional


def build_logging_config(log_dir: Optional[Path], log_level: str = "INFO"):
    handlers = ["console"]
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "hospital_pharmacy.logging_utils.JsonFormatter",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
            },
        },
        "root": {
            "handlers": handlers,
            "level": log_level,
        },
        "loggers": {
            "django": {
                "handlers": handlers,
                "level": log_level,
                "propagate": False,
            },
            "django.server": {
                "handlers": handlers,
                "level": "WARNING",
                "propagate": False,
            },
            "django.request": {
                "handlers": handlers,
                "level": "ERROR",
                "propagate": False,
            },
            "pharmacy": {
                "handlers": handlers,
                "level": log_level,
                "propagate": False,
            },
            "pharmacy.request": {
                "handlers": handlers,
                "level": log_level,
                "propagate": False,
            },
        },
    }

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        # Several worker processes write to the same file.
        config["handlers"]["file"] = {
            "class": "concurrent_log_handler.ConcurrentTimedRotatingFileHandler",
            "filename": log_dir / "pharmacy.log",
            "when": "midnight",
            "interval": 1,
            "backupCount": 30,
            "formatter": "json",
            "encoding": "utf-8",
        }
        handlers.append("file")

    # Keep test output quiet.
    if "test" in sys.argv or "pytest" in sys.modules:
        config["handlers"] = {name: {"class": "logging.NullHandler"} for name in config["handlers"]}

    return config
