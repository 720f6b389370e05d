# logger/logger.py
import logging
import threading
import tomllib
from pathlib import Path

CONFIG_PATH = Path(__file__).resolve().parents[1] / "config" / "config.toml"
DEFAULT_LOG_FILE = Path("logs/app.log")
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Cached config and locks
_config_lock = threading.Lock()
_cached_config = None

_logger_lock = threading.Lock()


def load_logging_config():
    """Read the [logging] section once; defaults apply when it is missing or unreadable."""
    global _cached_config

    if _cached_config is None:
        with _config_lock:
            if _cached_config is None:
                try:
                    with open(CONFIG_PATH, "rb") as f:
                        config = tomllib.load(f)
                    log_cfg = config.get("logging", {})
                    log_file = log_cfg.get("file", str(DEFAULT_LOG_FILE))
                    _cached_config = {
                        "level": log_cfg.get("level", "INFO").upper(),
                        "file": Path(log_file) if log_file else None,
                        "format": log_cfg.get("format", DEFAULT_FORMAT),
                        "console": log_cfg.get("console_export", True),
                    }
                except (OSError, tomllib.TOMLDecodeError):
                    # Logging must come up even when config.toml is broken
                    _cached_config = {
                        "level": "INFO",
                        "file": DEFAULT_LOG_FILE,
                        "format": DEFAULT_FORMAT,
                        "console": True,
                    }

    return _cached_config


def get_logger(name: str) -> logging.Logger:
    cfg = load_logging_config()
    logger = logging.getLogger(name)

    with _logger_lock:
        if not logger.handlers:
            logger.setLevel(getattr(logging, cfg["level"], logging.INFO))

            formatter = logging.Formatter(cfg["format"])

            if cfg["console"]:
                console_handler = logging.StreamHandler()
                console_handler.setFormatter(formatter)
                logger.addHandler(console_handler)

            if cfg["file"] is not None:
                cfg["file"].parent.mkdir(parents=True, exist_ok=True)
                file_handler = logging.FileHandler(cfg["file"])
                file_handler.setFormatter(formatter)
                logger.addHandler(file_handler)

    return logger
