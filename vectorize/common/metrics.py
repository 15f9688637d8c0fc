"""Metrics collection for the vectorize worker.

Thin wrapper around ``prometheus_client`` so the worker loop and job executor
record queue reads, job outcomes, deletions, and writes with consistent
labels.

Design notes
- Metrics and labels are predeclared to keep label sets bounded
- Each collector owns its registry (tests pass a fresh one)
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest, start_http_server
import structlog

logger = structlog.get_logger("vectorize.metrics")


class MetricsCollector:
    """Centralized metrics for a worker process.

    Parameters
    - service_name: Logical name of the worker
    - registry: Optional custom ``CollectorRegistry`` (e.g. for testing)
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()

        self.queue_reads = Counter(
            'vectorize_queue_reads_total',
            'Queue read attempts by outcome',
            ['result'],
            registry=self.registry
        )

        self.jobs = Counter(
            'vectorize_jobs_total',
            'Executed embedding jobs',
            ['transformer', 'table_method', 'status'],
            registry=self.registry
        )

        self.job_duration = Histogram(
            'vectorize_job_duration_seconds',
            'Embedding job duration',
            ['transformer'],
            registry=self.registry
        )

        self.messages_deleted = Counter(
            'vectorize_messages_deleted_total',
            'Queue message deletions by reason',
            ['reason'],
            registry=self.registry
        )

        self.embeddings_written = Counter(
            'vectorize_embeddings_written_total',
            'Embedding rows written',
            ['table_method'],
            registry=self.registry
        )

        self.provider_request_duration = Histogram(
            'vectorize_provider_request_duration_seconds',
            'Embedding provider request duration',
            ['transformer'],
            registry=self.registry
        )

    def record_queue_read(self, result: str) -> None:
        """Record a queue read: ``message``, ``empty``, or ``error``."""
        self.queue_reads.labels(result=result).inc()

    def record_job(
        self,
        transformer: str,
        table_method: str,
        status: str,
        duration: Optional[float] = None
    ) -> None:
        """Record one job execution.

        duration is expected in seconds to match Prometheus histogram units.
        """
        self.jobs.labels(transformer=transformer, table_method=table_method, status=status).inc()
        if duration is not None:
            self.job_duration.labels(transformer=transformer).observe(duration)

    def record_message_deleted(self, reason: str) -> None:
        """Record a deletion attempt: ``success``, ``read_limit``, or ``error``."""
        self.messages_deleted.labels(reason=reason).inc()

    def record_embeddings_written(self, table_method: str, count: int) -> None:
        self.embeddings_written.labels(table_method=table_method).inc(count)

    def record_provider_request(self, transformer: str, duration: float) -> None:
        self.provider_request_duration.labels(transformer=transformer).observe(duration)

    def get_metrics(self) -> str:
        """Get metrics in Prometheus exposition format for scraping."""
        return generate_latest(self.registry).decode('utf-8')

    def serve(self, port: int) -> None:
        """Expose this collector's registry over HTTP on ``port``."""
        start_http_server(port, registry=self.registry)
        logger.info("Metrics exporter started", port=port)


_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector(service_name: str) -> MetricsCollector:
    """Get or create the process-wide metrics collector."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector(service_name)
    return _metrics_collector
