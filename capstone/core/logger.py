"""
Logging setup.

- Console handler for everything at LOG_LEVEL
- Rotating file handler (10MB x 5) under LOG_DIR
- Database handler persisting WARNING and above into error_logs
"""

import json
import logging
import logging.handlers
import threading
from pathlib import Path

from sqlalchemy import text

from capstone.core.config import get_settings

settings = get_settings()

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DETAILED_FORMAT = "%(asctime)s [%(levelname)s] %(name)s %(funcName)s:%(lineno)d: %(message)s"

# attributes set through `extra=` that map onto error_logs columns
RECORD_FIELDS = ("error_code", "request_method", "request_url", "user_id", "ip_address", "user_agent")


class DatabaseLogHandler(logging.Handler):
    """Write log records into the error_logs table."""

    def __init__(self, level=logging.WARNING):
        super().__init__(level)
        self._local = threading.local()

    def emit(self, record: logging.LogRecord) -> None:
        # a failing insert must not log back into this handler
        if getattr(self._local, "busy", False):
            return
        self._local.busy = True
        try:
            from capstone.db.sqlite import engine

            stack_trace = None
            if record.exc_info:
                stack_trace = logging.Formatter().formatException(record.exc_info)
            additional = getattr(record, "additional_data", None)
            params = {field: getattr(record, field, None) for field in RECORD_FIELDS}
            params.update({
                "level": record.levelname.lower(),
                "message": record.getMessage()[:2000],
                "stack_trace": stack_trace,
                "additional_data": json.dumps(additional, default=str) if additional else None,
            })
            with engine.begin() as conn:
                conn.execute(
                    text("""
                        INSERT INTO error_logs (level, message, error_code, request_method, request_url,
                            user_id, ip_address, user_agent, stack_trace, additional_data)
                        VALUES (:level, :message, :error_code, :request_method, :request_url,
                            :user_id, :ip_address, :user_agent, :stack_trace, :additional_data)
                    """),
                    params
                )
        except Exception:
            self.handleError(record)
        finally:
            self._local.busy = False


def setup_logging(enable_database: bool = True) -> None:
    """Configure the root logger once at startup."""
    root = logging.getLogger()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    root.setLevel(level)

    for handler in list(root.handlers):
        if getattr(handler, "_capstone", False):
            root.removeHandler(handler)
            handler.close()

    handlers = []

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    console.setLevel(level)
    handlers.append(console)

    if settings.log_to_file:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(exist_ok=True, parents=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / "app.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8"
        )
        file_handler.setFormatter(logging.Formatter(DETAILED_FORMAT))
        file_handler.setLevel(logging.DEBUG if settings.debug else level)
        handlers.append(file_handler)

    if enable_database:
        handlers.append(DatabaseLogHandler())

    for handler in handlers:
        handler._capstone = True
        root.addHandler(handler)

    # Quiet noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)
