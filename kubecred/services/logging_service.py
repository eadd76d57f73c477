"""
Logging and operation monitoring for the kubeconfig credential service.

Records go to a rotating JSON log file, an errors-only file beside it and
stderr. Operation metrics and tracked errors are kept in memory for the
health endpoint; both histories are bounded and drop their oldest entries.
"""
import json
import logging
import logging.handlers
import sys
import threading
import time
import traceback
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Any, Optional, List

DEFAULT_HISTORY_SIZE = 1000


@dataclass
class OperationMetric:
    """Duration and outcome of one issue, check or rotate call."""
    operation: str
    duration_ms: float
    recorded_at: datetime
    success: bool
    error_message: Optional[str] = None
    extra_data: Optional[Dict[str, Any]] = None


@dataclass
class ErrorMetric:
    """A tracked failure."""
    error_type: str
    error_message: str
    recorded_at: datetime
    kind: Optional[str] = None
    extra_data: Optional[Dict[str, Any]] = None


class JSONFormatter(logging.Formatter):
    """Formats records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        exception_info = None
        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            exception_info = {
                'type': exc_type.__name__ if exc_type else None,
                'message': str(exc_value) if exc_value else None,
                'traceback': traceback.format_exception(*record.exc_info)
            }

        return json.dumps({
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger_name': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line_number': record.lineno,
            'extra_data': getattr(record, 'extra_data', None),
            'exception_info': exception_info
        }, default=str)


class PerformanceMonitor:
    """Keeps the most recent operation metrics."""

    def __init__(self, max_entries: int = DEFAULT_HISTORY_SIZE):
        self.metrics = deque(maxlen=max_entries)
        self.lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    @contextmanager
    def measure_operation(self, operation: str, extra_data: Optional[Dict[str, Any]] = None):
        """Context manager recording the duration and outcome of an operation."""
        started = time.monotonic()
        error_message = None

        try:
            yield
        except Exception as e:
            error_message = str(e)
            raise
        finally:
            metric = OperationMetric(
                operation=operation,
                duration_ms=(time.monotonic() - started) * 1000,
                recorded_at=datetime.now(),
                success=error_message is None,
                error_message=error_message,
                extra_data=extra_data
            )
            with self.lock:
                self.metrics.append(metric)

            self.logger.debug(
                f"{operation} took {metric.duration_ms:.1f}ms",
                extra={'extra_data': {
                    'operation': operation,
                    'duration_ms': metric.duration_ms,
                    'success': metric.success,
                    **(extra_data or {})
                }}
            )

    def get_metrics(self, operation: Optional[str] = None,
                    since: Optional[datetime] = None) -> List[OperationMetric]:
        """Get recorded metrics, optionally for one operation or after ``since``."""
        with self.lock:
            metrics = list(self.metrics)
        return [
            m for m in metrics
            if (operation is None or m.operation == operation)
            and (since is None or m.recorded_at >= since)
        ]

    def get_operation_stats(self, operation: str) -> Dict[str, Any]:
        metrics = self.get_metrics(operation=operation)
        if not metrics:
            return {}

        durations = [m.duration_ms for m in metrics]
        failures = sum(1 for m in metrics if not m.success)
        return {
            'operation': operation,
            'total_calls': len(metrics),
            'success_count': len(metrics) - failures,
            'failure_count': failures,
            'avg_duration_ms': sum(durations) / len(durations),
            'max_duration_ms': max(durations)
        }


class ErrorTracker:
    """Keeps the most recent failures, summarized by error kind."""

    def __init__(self, max_entries: int = DEFAULT_HISTORY_SIZE):
        self.errors = deque(maxlen=max_entries)
        self.lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def track_error(self, error: Exception, extra_data: Optional[Dict[str, Any]] = None):
        """Record a failure; KubeconfigError kinds are kept for the summary."""
        kind = getattr(error, 'kind', None)
        metric = ErrorMetric(
            error_type=type(error).__name__,
            error_message=str(error),
            recorded_at=datetime.now(),
            kind=getattr(kind, 'value', kind),
            extra_data=extra_data
        )
        with self.lock:
            self.errors.append(metric)

        self.logger.debug(
            f"Error tracked: {metric.error_type}",
            extra={'extra_data': {'error_type': metric.error_type, 'kind': metric.kind, **(extra_data or {})}}
        )

    def get_errors(self, kind: Optional[str] = None,
                   since: Optional[datetime] = None) -> List[ErrorMetric]:
        with self.lock:
            errors = list(self.errors)
        return [
            e for e in errors
            if (kind is None or e.kind == kind)
            and (since is None or e.recorded_at >= since)
        ]

    def get_error_summary(self, since: Optional[datetime] = None) -> Dict[str, Any]:
        """Count errors by kind, falling back to the exception type."""
        errors = self.get_errors(since=since)
        kinds: Dict[str, int] = {}
        for error in errors:
            key = error.kind or error.error_type
            kinds[key] = kinds.get(key, 0) + 1
        return {'total_errors': len(errors), 'kinds': kinds}


class LoggingService:
    """Configures logging and exposes operation and error tracking."""

    def __init__(self, config, history_size: int = DEFAULT_HISTORY_SIZE):
        """
        Install log handlers and create the metric histories.

        Args:
            config: Application configuration (log_level, log_file_path)
            history_size: Number of operation metrics and errors kept in memory
        """
        self.config = config
        self.performance_monitor = PerformanceMonitor(history_size)
        self.error_tracker = ErrorTracker(history_size)
        self._setup_logging()
        self.logger = logging.getLogger(__name__)
        self.logger.info("Logging service initialized")

    def _setup_logging(self):
        """Replace the root logger's handlers with file, console and error-only handlers."""
        log_path = Path(self.config.log_file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
        root_logger.setLevel(log_level)

        json_formatter = JSONFormatter()

        file_handler = logging.handlers.RotatingFileHandler(
            filename=str(log_path), maxBytes=10 * 1024 * 1024, backupCount=5, encoding='utf-8'
        )
        file_handler.setFormatter(json_formatter)
        file_handler.setLevel(log_level)

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        console_handler.setLevel(log_level)

        error_handler = logging.handlers.RotatingFileHandler(
            filename=str(log_path.with_suffix('.errors.log')),
            maxBytes=5 * 1024 * 1024, backupCount=3, encoding='utf-8'
        )
        error_handler.setFormatter(json_formatter)
        error_handler.setLevel(logging.ERROR)

        for handler in (file_handler, console_handler, error_handler):
            root_logger.addHandler(handler)

    def measure_performance(self, operation: str, extra_data: Optional[Dict[str, Any]] = None):
        return self.performance_monitor.measure_operation(operation, extra_data)

    def track_error(self, error: Exception, extra_data: Optional[Dict[str, Any]] = None):
        self.error_tracker.track_error(error, extra_data)

    def get_performance_stats(self, operation: Optional[str] = None) -> Dict[str, Any]:
        """Get statistics for one operation, or for every recorded operation."""
        if operation:
            return self.performance_monitor.get_operation_stats(operation)

        operations = {m.operation for m in self.performance_monitor.get_metrics()}
        return {op: self.performance_monitor.get_operation_stats(op) for op in operations}

    def get_error_summary(self, since_hours: int = 24) -> Dict[str, Any]:
        return self.error_tracker.get_error_summary(since=datetime.now() - timedelta(hours=since_hours))

    def get_health_status(self) -> Dict[str, Any]:
        """Summarize the last hour of activity."""
        recent = datetime.now() - timedelta(hours=1)
        return {
            'status': 'healthy',
            'recent_errors': self.error_tracker.get_error_summary(since=recent)['total_errors'],
            'recent_operations': len(self.performance_monitor.get_metrics(since=recent)),
            'timestamp': datetime.now().isoformat()
        }
