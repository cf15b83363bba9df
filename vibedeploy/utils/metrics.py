"""
Metrics collection and emission for observability.

This module provides metrics tracking for:
- Pipeline outcomes (events ignored, commands published, ...)
- Status mutations published and failed
- Slack API call latency

Metrics are emitted as structured log lines.
"""

import time
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from contextlib import asynccontextmanager

from vibedeploy.utils.logging import get_logger, log_api_call

logger = get_logger(__name__)


class PipelineMetrics:
    """
    Collects counters for the lifetime of the process.

    Both subscription loops share one instance; they run on the same
    event loop so plain integer updates are safe.
    """

    def __init__(self):
        self.start_time: datetime = datetime.now(timezone.utc)
        self.counters: Dict[str, int] = {}
        self.api_calls: Dict[str, int] = {}
        self.api_latencies: Dict[str, list[float]] = {}

    def increment(self, name: str, amount: int = 1) -> None:
        """
        Increment a named counter.

        Args:
            name: Counter name (e.g., 'reaction_events_received')
            amount: Increment amount
        """
        self.counters[name] = self.counters.get(name, 0) + amount

    def get(self, name: str) -> int:
        """Current value of a counter, 0 if never incremented."""
        return self.counters.get(name, 0)

    def record_api_call(self, service: str, duration_ms: float) -> None:
        """
        Record API call and latency.

        Args:
            service: Service name (e.g., 'slack')
            duration_ms: Call duration in milliseconds
        """
        self.api_calls[service] = self.api_calls.get(service, 0) + 1

        if service not in self.api_latencies:
            self.api_latencies[service] = []
        self.api_latencies[service].append(duration_ms)

    def get_metrics_summary(self) -> Dict[str, Any]:
        """
        Get summary of collected metrics.

        Returns:
            Dictionary of metrics
        """
        uptime = (datetime.now(timezone.utc) - self.start_time).total_seconds()
        summary: Dict[str, Any] = {
            "start_time": self.start_time.isoformat(),
            "uptime_seconds": round(uptime, 2),
            "counters": dict(self.counters),
            "api_calls": dict(self.api_calls),
        }

        if self.api_latencies:
            latency_stats = {}
            for service, latencies in self.api_latencies.items():
                if latencies:
                    latency_stats[service] = {
                        "count": len(latencies),
                        "min_ms": round(min(latencies), 2),
                        "max_ms": round(max(latencies), 2),
                        "avg_ms": round(sum(latencies) / len(latencies), 2),
                    }
            summary["api_latencies"] = latency_stats

        return summary

    def log_summary(self) -> None:
        """Emit every counter and log the full summary."""
        for name, value in sorted(self.counters.items()):
            emit_metric(name, value)
        logger.info("Pipeline metrics summary", extra={"metrics": self.get_metrics_summary()})


@asynccontextmanager
async def track_api_call(
    metrics: Optional[PipelineMetrics],
    service: str,
    logger_adapter,
    endpoint: str = "",
    method: str = ""
):
    """
    Context manager to track API call timing.

    Usage:
        async with track_api_call(metrics, "slack", logger, "conversations.history", "GET"):
            response = await client.conversations_history(...)

    Args:
        metrics: Metrics collector (optional)
        service: Service name
        logger_adapter: Logger for logging API calls
        endpoint: API method name
        method: HTTP method
    """
    start_time = time.time()
    error = None

    try:
        yield
    except Exception as e:
        error = e
        raise
    finally:
        duration_ms = (time.time() - start_time) * 1000

        if metrics:
            metrics.record_api_call(service, duration_ms)

        log_api_call(
            logger_adapter,
            service=service,
            endpoint=endpoint,
            method=method,
            duration_ms=duration_ms,
            error=str(error) if error else None
        )


def emit_metric(metric_name: str, value: float, **tags: Any) -> None:
    """
    Emit a metric as a structured log line.

    Args:
        metric_name: Metric name
        value: Metric value
        **tags: Metric tags/labels
    """
    logger.info(
        f"Metric: {metric_name}",
        extra={
            "metric_name": metric_name,
            "metric_value": value,
            "metric_tags": tags,
        }
    )
