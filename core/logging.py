"""
Centralized logging with rotating, compressed log files and per-component routing.
"""
import atexit
import gzip
import logging
import logging.handlers
import os
import re
import shutil
import sys
import threading
from pathlib import Path
from typing import Any, Dict

import structlog
from pythonjsonlogger import jsonlogger

from core.config import settings


class ComponentFilter(logging.Filter):
    """Ensure every record carries a ``component`` attribute."""

    def __init__(self, default_component: str = "app"):
        super().__init__()
        self.default_component = default_component

    def filter(self, record):
        if not hasattr(record, "component"):
            name = record.name
            if name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
                record.component = "http"
            elif name.startswith("sqlalchemy") or name.startswith("alembic"):
                record.component = "database"
            else:
                record.component = self.default_component
        return True


class SecurityFilter(logging.Filter):
    """Redact credentials from log records."""

    SENSITIVE_KEYS = {
        "password", "token", "secret", "key", "api_key",
        "authorization", "credential", "jwt", "bearer",
    }

    _LONG_KEY = re.compile(r"\b[A-Za-z0-9]{32,}\b")
    _BEARER = re.compile(r"Bearer\s+[A-Za-z0-9\-_=]+\.[A-Za-z0-9\-_=]+\.[A-Za-z0-9\-_=]+")
    _URL_CREDENTIALS = re.compile(r"://[^:/]+:[^@]+@")

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = self._sanitize_message(record.msg)
        if record.args:
            if isinstance(record.args, dict):
                record.args = self._sanitize_value(record.args)
            else:
                record.args = tuple(self._sanitize_value(arg) for arg in record.args)
        return True

    def _sanitize_message(self, message: str) -> str:
        message = self._LONG_KEY.sub("[REDACTED]", message)
        message = self._BEARER.sub("Bearer [REDACTED]", message)
        return self._URL_CREDENTIALS.sub("://[REDACTED]:[REDACTED]@", message)

    def _sanitize_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._sanitize_message(value)
        if isinstance(value, dict):
            return {
                k: "[REDACTED]" if any(s in str(k).lower() for s in self.SENSITIVE_KEYS) else v
                for k, v in value.items()
            }
        return value


def _gzip_file(path: str) -> None:
    """Compress ``path`` to ``path.gz`` and remove the original."""
    try:
        with open(path, "rb") as f_in, gzip.open(f"{path}.gz", "wb") as f_out:
            shutil.copyfileobj(f_in, f_out)
        os.remove(path)
    except OSError as e:
        # Keep the uncompressed backup
        print(f"Warning: failed to compress log file {path}: {e}", file=sys.stderr)


class CompressedRotatingFileHandler(logging.handlers.RotatingFileHandler):
    """Size-based rotation that gzips the most recent backup."""

    def __init__(self, *args, compress_logs: bool = True, **kwargs):
        self.compress_logs = compress_logs
        super().__init__(*args, **kwargs)

    def doRollover(self):
        super().doRollover()
        if not (self.compress_logs and self.backupCount > 0):
            return
        # Shift older archives up by one before compressing the new backup
        for i in range(self.backupCount - 1, 0, -1):
            src = f"{self.baseFilename}.{i}.gz"
            if os.path.exists(src):
                os.replace(src, f"{self.baseFilename}.{i + 1}.gz")
        backup = f"{self.baseFilename}.1"
        if os.path.exists(backup):
            _gzip_file(backup)


class CompressedTimedRotatingFileHandler(logging.handlers.TimedRotatingFileHandler):
    """Time-based rotation that gzips rotated files."""

    def __init__(self, *args, compress_logs: bool = True, **kwargs):
        self.compress_logs = compress_logs
        super().__init__(*args, **kwargs)

    def doRollover(self):
        super().doRollover()
        if not self.compress_logs:
            return
        directory = os.path.dirname(self.baseFilename)
        prefix = os.path.basename(self.baseFilename) + "."
        for entry in os.listdir(directory):
            if entry.startswith(prefix) and not entry.endswith(".gz"):
                _gzip_file(os.path.join(directory, entry))


_RESERVED_ATTRS = set(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}


class StructuredLogger:
    """Logger wrapper that accepts keyword context: ``logger.info("msg", user_id=1)``."""

    def __init__(self, name: str, logger: logging.Logger):
        self.name = name
        self._logger = logger

    def _format_message(self, msg: str, **kwargs) -> str:
        if not kwargs or settings.log_format == "json":
            return msg
        parts = ", ".join(f"{key}={value}" for key, value in kwargs.items())
        return f"{msg} [{parts}]"

    def _log(self, level: int, msg: str, *args, **kwargs):
        exc_info = kwargs.pop("exc_info", False)
        extra = kwargs.pop("extra", {})
        extra["component"] = self.name
        if settings.log_format == "json":
            # python-json-logger serializes extra attributes as fields
            for key, value in kwargs.items():
                extra[f"ctx_{key}" if key in _RESERVED_ATTRS else key] = value
        formatted = self._format_message(msg, **kwargs)
        self._logger.log(level, formatted, *args, exc_info=exc_info, extra=extra)

    def debug(self, msg: str, *args, **kwargs):
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        kwargs["exc_info"] = True
        self.error(msg, *args, **kwargs)

    def critical(self, msg: str, *args, **kwargs):
        self._log(logging.CRITICAL, msg, *args, **kwargs)


class CentralizedLogManager:
    """Singleton owning the root handlers and the per-component log files."""

    _instance = None
    _lock = threading.Lock()
    _initialized = False

    # component -> (log file setting, level, logger names)
    COMPONENTS = {
        "security": ("security_log_file", logging.INFO, ["security", "auth"]),
        "ai": ("ai_log_file", logging.INFO, ["ai_manager", "ai"]),
        "database": ("database_log_file", None, ["database", "sqlalchemy.engine", "alembic"]),
        "access": ("access_log_file", logging.INFO, ["uvicorn.access", "access", "middleware"]),
        "realtime": ("realtime_log_file", logging.INFO, ["realtime", "notifications"]),
    }

    # Component loggers that should not also write to the app log
    ISOLATED = {"security", "auth", "ai_manager", "ai"}

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        with self._lock:
            if self._initialized:
                return
            self._loggers: Dict[str, StructuredLogger] = {}
            self._handlers: Dict[str, logging.Handler] = {}
            self._log_directory = Path(settings.log_directory)
            if settings.enable_file_logging:
                self._log_directory.mkdir(parents=True, exist_ok=True)
            self._setup_root_logger()
            self._setup_component_loggers()
            self._configure_structlog()
            CentralizedLogManager._initialized = True

    def _create_formatter(self, include_component: bool) -> logging.Formatter:
        if settings.log_format == "json":
            fmt = "%(asctime)s %(name)s %(levelname)s %(message)s"
            if include_component:
                fmt = "%(asctime)s %(name)s %(levelname)s %(component)s %(message)s"
            return jsonlogger.JsonFormatter(fmt=fmt, datefmt="%Y-%m-%dT%H:%M:%S")
        fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        if include_component:
            fmt = "%(asctime)s - %(name)s - %(levelname)s - [%(component)s] - %(message)s"
        return logging.Formatter(fmt=fmt, datefmt="%Y-%m-%d %H:%M:%S")

    def _create_rotating_handler(self, log_file: str, level: int) -> logging.Handler:
        file_path = str(self._log_directory / log_file)
        if settings.log_rotation_when == "size":
            handler = CompressedRotatingFileHandler(
                filename=file_path,
                maxBytes=settings.log_file_max_size_mb * 1024 * 1024,
                backupCount=settings.log_file_backup_count,
                compress_logs=settings.log_compression,
                encoding="utf-8",
            )
        else:
            handler = CompressedTimedRotatingFileHandler(
                filename=file_path,
                when=settings.log_rotation_when,
                interval=settings.log_rotation_interval,
                backupCount=settings.log_file_backup_count,
                compress_logs=settings.log_compression,
                encoding="utf-8",
            )
        handler.setLevel(level)
        handler.addFilter(ComponentFilter())
        handler.addFilter(SecurityFilter())
        handler.setFormatter(self._create_formatter(include_component=True))
        return handler

    def _setup_root_logger(self):
        level = getattr(logging, settings.log_level.upper(), logging.INFO)
        root = logging.getLogger()
        root.handlers.clear()
        root.setLevel(level)

        console = logging.StreamHandler(sys.stdout)
        console.setLevel(level)
        console.addFilter(ComponentFilter())
        console.addFilter(SecurityFilter())
        console.setFormatter(self._create_formatter(include_component=False))
        root.addHandler(console)
        self._handlers["console"] = console

        if settings.enable_file_logging:
            self._handlers["app"] = self._create_rotating_handler(settings.app_log_file, logging.INFO)
            self._handlers["error"] = self._create_rotating_handler(settings.error_log_file, logging.ERROR)
            root.addHandler(self._handlers["app"])
            root.addHandler(self._handlers["error"])

    def _setup_component_loggers(self):
        if not settings.enable_file_logging:
            return
        for component, (file_setting, level, logger_names) in self.COMPONENTS.items():
            if level is None:
                level = logging.INFO if settings.enable_sql_logging else logging.WARNING
            handler = self._create_rotating_handler(getattr(settings, file_setting), level)
            self._handlers[component] = handler
            for logger_name in logger_names:
                component_logger = logging.getLogger(logger_name)
                component_logger.addHandler(handler)
                component_logger.setLevel(level)
                if logger_name in self.ISOLATED:
                    # Still reach the console, but skip the root app/error files
                    component_logger.propagate = False
                    component_logger.addHandler(self._handlers["console"])
                    component_logger.addHandler(self._handlers["error"])

    def _configure_structlog(self):
        """Send structlog events through the stdlib loggers configured above."""
        if settings.log_format == "json":
            # Keyword context becomes extra fields for python-json-logger
            renderer = structlog.stdlib.render_to_log_kwargs
        else:
            renderer = structlog.processors.KeyValueRenderer(key_order=["event"])
        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.processors.format_exc_info,
                renderer,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

    def get_logger(self, name: str) -> StructuredLogger:
        if name not in self._loggers:
            self._loggers[name] = StructuredLogger(name, logging.getLogger(name))
        return self._loggers[name]

    def shutdown(self):
        for handler in self._handlers.values():
            try:
                handler.close()
            except OSError as e:
                print(f"Error closing log handler: {e}", file=sys.stderr)
        self._handlers.clear()
        self._loggers.clear()
        CentralizedLogManager._initialized = False


_log_manager = None


def setup_logging() -> CentralizedLogManager:
    """Initialize the logging system (idempotent)."""
    global _log_manager
    if _log_manager is None:
        _log_manager = CentralizedLogManager()
    return _log_manager


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger for a component."""
    return setup_logging().get_logger(name)


def shutdown_logging():
    """Close all handlers."""
    global _log_manager
    if _log_manager is not None:
        _log_manager.shutdown()
        _log_manager = None


# Pre-configured loggers for common components
app_logger = get_logger("app")
security_logger = get_logger("security")
database_logger = get_logger("database")

atexit.register(shutdown_logging)
