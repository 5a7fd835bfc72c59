"""In-process metrics for git command execution."""

import time
import threading
from datetime import datetime
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, asdict
from contextlib import contextmanager, nullcontext

from logging_config import get_logger, log_performance

logger = get_logger(__name__)


@dataclass
class PerformanceBenchmark:
    """Performance benchmark data."""
    operation: str
    duration_ms: float
    timestamp: str
    success: bool
    error_type: Optional[str] = None


@dataclass
class CommandCounters:
    """Counters for the current process."""
    git_commands: int = 0
    failed_git_commands: int = 0
    streaming_commands: int = 0
    errors_count: int = 0


class MetricsCollector:
    """Thread-safe collector for command counts and timings.

    Nothing is written to disk; the host application reads the summary
    through :meth:`get_metrics_summary`.
    """

    MAX_BENCHMARKS = 500

    def __init__(self):
        self.started_at = datetime.now().isoformat()
        self.counters = CommandCounters()
        self.performance_benchmarks: List[PerformanceBenchmark] = []
        self.last_errors: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def record_git_command(self, command: List[str], success: bool, duration_ms: float):
        """Record a capture-mode git run."""
        with self._lock:
            self.counters.git_commands += 1
            if not success:
                self.counters.failed_git_commands += 1
        self.record_performance(command[0] if command else "unknown", duration_ms, success)

    def record_streaming_command(self, command: List[str]):
        """Record that a streaming invocation was started."""
        with self._lock:
            self.counters.streaming_commands += 1
        logger.debug(f"Streaming command started: {command[0] if command else 'unknown'}")

    def record_error(self, error_type: str, error_message: str, context: Dict[str, Any] = None):
        """Record error metrics."""
        with self._lock:
            self.counters.errors_count += 1
            self.last_errors.append({
                'error_type': error_type,
                'error_message': error_message,
                'context': context or {},
                'timestamp': datetime.now().isoformat(),
            })
            del self.last_errors[:-20]

    def record_performance(self, operation: str, duration_ms: float, success: bool, error_type: Optional[str] = None):
        """Record performance benchmark."""
        benchmark = PerformanceBenchmark(
            operation=operation,
            duration_ms=duration_ms,
            timestamp=datetime.now().isoformat(),
            success=success,
            error_type=error_type
        )
        with self._lock:
            self.performance_benchmarks.append(benchmark)
            del self.performance_benchmarks[:-self.MAX_BENCHMARKS]

    @contextmanager
    def time_operation(self, operation_name: str):
        """Context manager for timing operations.

        Usage:
            with metrics.time_operation('git_status'):
                # perform operation
                pass
        """
        start_time = time.time()
        success = True
        error_type = None

        try:
            yield
        except Exception as e:
            success = False
            error_type = type(e).__name__
            raise
        finally:
            duration = time.time() - start_time
            self.record_performance(operation_name, duration * 1000, success, error_type)
            log_performance(logger, operation_name, duration, success=success, error_type=error_type)

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Get summary of collected metrics."""
        with self._lock:
            summary = {
                'started_at': self.started_at,
                'counters': asdict(self.counters),
                'performance_benchmarks_count': len(self.performance_benchmarks),
                'recent_errors': list(self.last_errors),
            }
            durations = [b.duration_ms for b in self.performance_benchmarks if b.success]
            if durations:
                summary['performance_stats'] = {
                    'avg_duration_ms': sum(durations) / len(durations),
                    'min_duration_ms': min(durations),
                    'max_duration_ms': max(durations),
                    'success_rate': len(durations) / len(self.performance_benchmarks)
                }
        return summary


# Global metrics collector instance
_metrics_collector: Optional[MetricsCollector] = None


def initialize_metrics() -> MetricsCollector:
    """Initialize global metrics collector."""
    global _metrics_collector
    _metrics_collector = MetricsCollector()
    return _metrics_collector


def get_metrics_collector() -> Optional[MetricsCollector]:
    """Get the global metrics collector instance."""
    return _metrics_collector


def record_git_command(command: List[str], success: bool, duration_ms: float):
    """Record a git command run."""
    if _metrics_collector:
        _metrics_collector.record_git_command(command, success, duration_ms)


def record_streaming_command(command: List[str]):
    """Record a streaming invocation."""
    if _metrics_collector:
        _metrics_collector.record_streaming_command(command)


def record_error(error_type: str, error_message: str, context: Dict[str, Any] = None):
    """Record an error."""
    if _metrics_collector:
        _metrics_collector.record_error(error_type, error_message, context)


def time_operation(operation_name: str):
    """Context manager for timing operations."""
    if _metrics_collector:
        return _metrics_collector.time_operation(operation_name)
    return nullcontext()
