"""Logging configuration with per-scan run ids.

Every capture-to-speech run is tagged with a short run id. Pipeline steps
install it with ``RunContext`` on whichever worker thread executes them, and
``RunIdFilter`` stamps it on each record, so the lines of one scan can be
grouped even though the run hops between the capture, processing,
recognition and main threads. Records logged outside a run carry ``-``.
"""
import logging
import logging.handlers
import sys
import json
import threading
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Union

NO_RUN = '-'

_current_run: ContextVar[Optional[str]] = ContextVar('scan_run_id', default=None)

# Worker threads started outside a context still see the id set on them
_thread_local = threading.local()

# Standard LogRecord attributes; anything else was passed through ``extra``
_RECORD_ATTRIBUTES = frozenset(vars(logging.LogRecord('', 0, '', 0, '', None, None))) | {
    'message', 'asctime', 'run_id',
}

_NOISY_LOGGERS = ('PIL', 'ultralytics', 'comtypes', 'matplotlib')


def new_run_id() -> str:
    """Short random id for one scan."""
    return uuid.uuid4().hex[:8]


def get_run_id() -> Optional[str]:
    run_id = _current_run.get()
    if run_id is None:
        run_id = getattr(_thread_local, 'run_id', None)
    return run_id


def set_run_id(run_id: Optional[str] = None) -> str:
    if run_id is None:
        run_id = new_run_id()
    _current_run.set(run_id)
    _thread_local.run_id = run_id
    return run_id


def clear_run_id() -> None:
    _current_run.set(None)
    _thread_local.__dict__.pop('run_id', None)


class RunIdFilter(logging.Filter):
    """Attach the active scan run id to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = get_run_id() or NO_RUN
        return True


class JsonLineFormatter(logging.Formatter):
    """One JSON object per line, for log files read by tools."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'time': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'run_id': getattr(record, 'run_id', NO_RUN),
            'thread': record.threadName,
            'message': record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry['error'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': self.formatException(record.exc_info),
            }

        extra = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRIBUTES}
        if extra:
            entry['extra'] = extra
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Plain text lines showing thread and run id."""

    FORMAT = '%(asctime)s %(levelname)-7s [%(run_id)s] %(threadName)s %(name)s: %(message)s'

    def __init__(self):
        super().__init__(self.FORMAT)


class LoggingManager:
    """Installs and removes the application's root handlers."""

    def __init__(self):
        self._handlers: Dict[str, logging.Handler] = {}
        self._log_dir: Optional[Path] = None

    @property
    def is_configured(self) -> bool:
        return bool(self._handlers)

    @property
    def log_dir(self) -> Optional[Path]:
        return self._log_dir

    def configure(
        self,
        log_level: str = 'INFO',
        log_dir: Optional[Union[str, Path]] = None,
        enable_file_logging: bool = False,
        enable_console_logging: bool = True,
        structured_logging: bool = False,
        max_file_size: int = 5 * 1024 * 1024,
        backup_count: int = 3,
        application_name: str = 'text-reader'
    ) -> None:
        """Configure root logging once; later calls are ignored until ``shutdown``.

        Args:
            log_level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for the rotating log file
            enable_file_logging: Write ``<application_name>.log`` under ``log_dir``
            enable_console_logging: Write to stdout
            structured_logging: Use JSON lines in the log file
            max_file_size: Rotate the log file past this many bytes
            backup_count: Rotated files to keep
            application_name: Base name of the log file
        """
        if self.is_configured:
            return

        level = logging.getLevelName(log_level.upper())
        if not isinstance(level, int):
            level = logging.INFO

        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        if enable_console_logging:
            console = logging.StreamHandler(sys.stdout)
            self._install('console', console, ConsoleFormatter(), level)

        if enable_file_logging:
            self._log_dir = Path(log_dir or 'logs')
            self._log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                self._log_dir / f'{application_name}.log',
                maxBytes=max_file_size,
                backupCount=backup_count,
                encoding='utf-8'
            )
            formatter = JsonLineFormatter() if structured_logging else ConsoleFormatter()
            self._install('file', file_handler, formatter, level)

        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

        logging.getLogger(__name__).info(
            f"Logging configured: level={logging.getLevelName(level)}, "
            f"file={enable_file_logging}, console={enable_console_logging}"
        )

    def _install(self, name: str, handler: logging.Handler,
                 formatter: logging.Formatter, level: int) -> None:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(RunIdFilter())
        logging.getLogger().addHandler(handler)
        self._handlers[name] = handler

    def shutdown(self) -> None:
        """Detach and close the handlers installed by ``configure``."""
        root_logger = logging.getLogger()
        for handler in self._handlers.values():
            root_logger.removeHandler(handler)
            handler.close()
        self._handlers.clear()


logging_manager = LoggingManager()


def configure_logging(**kwargs) -> None:
    logging_manager.configure(**kwargs)


class RunContext:
    """Scope a scan run id to a block, restoring the previous one afterwards."""

    def __init__(self, run_id: Optional[str] = None):
        self.run_id = run_id
        self._previous: Optional[str] = None

    def __enter__(self) -> str:
        self._previous = get_run_id()
        return set_run_id(self.run_id)

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._previous is None:
            clear_run_id()
        else:
            set_run_id(self._previous)
