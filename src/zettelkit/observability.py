"""Logging setup and per-operation timing for zettelkit.

Every command runs in its own process, so metrics live in memory and are
summarized in the debug log when the command finishes.
"""
import functools
import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

ROOT_LOGGER = "zettelkit"
LOG_FILE_NAME = "zettelkit.log"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(threadName)s %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

F = TypeVar('F', bound=Callable[..., Any])


def _has_console_handler(target: logging.Logger) -> bool:
    return any(
        type(h) is logging.StreamHandler for h in target.handlers
    )


def configure_logging(
    level: int = logging.WARNING,
    log_dir: Optional[Union[str, Path]] = None,
    max_bytes: int = 2 * 1024 * 1024,
    backup_count: int = 3,
    console: bool = True,
) -> Optional[Path]:
    """Attach handlers to the ``zettelkit`` logger.

    Console output goes to stderr so it never mixes with command output on
    stdout. A rotating file is only written when ``log_dir`` is given.
    Calling this again does not duplicate the console handler.

    Returns:
        Path of the log file, or None without file logging.
    """
    package_logger = logging.getLogger(ROOT_LOGGER)
    package_logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    handlers = []
    log_file = None
    if log_dir is not None:
        log_file = Path(log_dir) / LOG_FILE_NAME
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
            )
        )
    if console and not _has_console_handler(package_logger):
        handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)

    if log_file:
        logger.debug(f"File logging to {log_file} ({backup_count} x {max_bytes} bytes)")
    return log_file


@dataclass
class OperationStats:
    """Running totals for one operation name."""
    count: int = 0
    success_count: int = 0
    error_count: int = 0
    total_duration_ms: float = 0.0
    min_duration_ms: Optional[float] = None
    max_duration_ms: float = 0.0
    last_error: Optional[str] = None
    last_error_time: Optional[datetime] = None

    def add(self, duration_ms: float, error: Optional[str]) -> None:
        self.count += 1
        self.total_duration_ms += duration_ms
        if self.min_duration_ms is None or duration_ms < self.min_duration_ms:
            self.min_duration_ms = duration_ms
        self.max_duration_ms = max(self.max_duration_ms, duration_ms)
        if error is None:
            self.success_count += 1
        else:
            self.error_count += 1
            self.last_error = error
            self.last_error_time = datetime.now(timezone.utc)

    def as_dict(self) -> Dict[str, Any]:
        return {
            'count': self.count,
            'success_count': self.success_count,
            'error_count': self.error_count,
            'avg_duration_ms': round(self.total_duration_ms / self.count, 2) if self.count else 0,
            'min_duration_ms': round(self.min_duration_ms or 0, 2),
            'max_duration_ms': round(self.max_duration_ms, 2),
            'last_error': self.last_error,
            'last_error_time': self.last_error_time.isoformat() if self.last_error_time else None,
        }


class MetricsCollector:
    """Timing and outcome totals per operation (generate, rename, ...).

    Safe to use from the worker threads of a rebuild or a rename.
    """

    def __init__(self):
        self._stats: Dict[str, OperationStats] = {}
        self._lock = Lock()

    def record_operation(
        self,
        operation: str,
        duration_ms: float,
        success: bool,
        error: Optional[str] = None
    ) -> None:
        """Add one run of ``operation`` to its totals."""
        if not success and error is None:
            error = "unknown error"
        with self._lock:
            self._stats.setdefault(operation, OperationStats()).add(
                duration_ms, None if success else error
            )

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        """Snapshot of every operation's totals, keyed by operation name."""
        with self._lock:
            return {name: stats.as_dict() for name, stats in self._stats.items()}

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()

    def log_summary(self, level: int = logging.DEBUG) -> None:
        """Write one line per recorded operation to the log."""
        for name, snapshot in sorted(self.get_metrics().items()):
            logger.log(
                level,
                f"{name}: {snapshot['count']} run(s), {snapshot['error_count']} failed, "
                f"avg {snapshot['avg_duration_ms']}ms, max {snapshot['max_duration_ms']}ms",
            )


metrics = MetricsCollector()


@contextmanager
def timed_operation(operation: str, **context) -> Iterator[Dict[str, Any]]:
    """Time a block, record it in ``metrics`` and log its start and end.

    The yielded dict carries a short correlation id; anything added to it
    is included in the END line.

    Example:
        with timed_operation('rename', old='A', new='B') as op:
            op['dependents'] = len(outcomes)
    """
    op: Dict[str, Any] = {'correlation_id': uuid.uuid4().hex[:8]}
    cid = op['correlation_id']
    logger.debug(
        f"[{cid}] START {operation} " + " ".join(f"{k}={v}" for k, v in context.items())
    )
    started = time.perf_counter()
    error = None
    try:
        yield op
    except Exception as e:
        error = str(e) or type(e).__name__
        raise
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        metrics.record_operation(operation, elapsed_ms, error is None, error)
        extra = " ".join(f"{k}={v}" for k, v in op.items() if k != 'correlation_id')
        outcome = 'OK' if error is None else f'FAILED: {error}'
        logger.debug(f"[{cid}] END {operation} {elapsed_ms:.1f}ms {outcome} {extra}".rstrip())


def traced(operation_name: Optional[str] = None) -> Callable[[F], F]:
    """Decorator form of ``timed_operation``.

    Sized results are logged with their length, integers as they are.

    Example:
        @traced('generate')
        def generate(self) -> int:
            ...
    """
    def decorator(func: F) -> F:
        name = operation_name or func.__name__

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with timed_operation(name) as op:
                result = func(*args, **kwargs)
                if isinstance(result, int):
                    op['result'] = result
                elif hasattr(result, '__len__'):
                    op['result_count'] = len(result)
                return result

        return wrapper  # type: ignore
    return decorator
