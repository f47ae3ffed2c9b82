"""
Prometheus metrics for the activity relay service.
"""
from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry
import psutil
import os


class Metrics:
    """
    Centralized metrics for the activity relay service.

    Each instance owns its registry so several applications can live in
    one process (as they do in the test suite).
    """

    def __init__(self, service_name: str = "activity-relay", version: str = "0.1.0", registry=None):
        self.service_name = service_name
        self.version = version
        self.registry = registry or CollectorRegistry()

        # HTTP Metrics
        self.http_requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["service", "method", "path", "status"],
            registry=self.registry,
        )

        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["service", "method", "path"],
            registry=self.registry,
        )

        self.http_requests_active = Gauge(
            "http_requests_active",
            "Number of active HTTP requests",
            ["service"],
            registry=self.registry,
        )
        self.http_requests_active.labels(service=service_name).set(0)

        # Application Info
        self.app_info = Info(
            "app",
            "Application information",
            registry=self.registry,
        )
        self.app_info.info({"service": service_name, "version": version})

        self.app_up = Gauge(
            "app_up",
            "Application up status (1=up, 0=down)",
            ["service", "version"],
            registry=self.registry,
        )
        self.app_up.labels(service=service_name, version=version).set(1)

        # Pipeline metrics
        self.events_published_total = Counter(
            "activity_relay_events_published_total",
            "Events handed to the broker",
            ["event_type"],
            registry=self.registry,
        )

        self.publish_failures_total = Counter(
            "activity_relay_publish_failures_total",
            "Events the broker did not accept",
            registry=self.registry,
        )

        self.publish_latency = Histogram(
            "activity_relay_publish_latency_seconds",
            "Time spent waiting for the broker to accept an event",
            registry=self.registry,
        )

        self.events_consumed_total = Counter(
            "activity_relay_events_consumed_total",
            "Events appended to the store by the consumer",
            ["event_type"],
            registry=self.registry,
        )

        self.events_duplicate_total = Counter(
            "activity_relay_events_duplicate_total",
            "Deliveries skipped because their eventId was already stored",
            registry=self.registry,
        )

        self.events_malformed_total = Counter(
            "activity_relay_events_malformed_total",
            "Channel messages that could not be decoded",
            registry=self.registry,
        )

        self.events_stored = Gauge(
            "activity_relay_events_stored",
            "Number of events currently held in the store",
            registry=self.registry,
        )

        # System Metrics
        self.process_memory_bytes = Gauge(
            "process_resident_memory_bytes",
            "Resident memory size in bytes",
            ["service"],
            registry=self.registry,
        )
        self.update_system_metrics()

    def update_system_metrics(self):
        """Update system metrics from psutil."""
        try:
            memory_info = psutil.Process(os.getpid()).memory_info()
        except psutil.Error:
            return
        self.process_memory_bytes.labels(service=self.service_name).set(memory_info.rss)

    def record_event_published(self, event_type: str, duration_seconds: float):
        """Record a successful publication."""
        self.events_published_total.labels(event_type=event_type).inc()
        self.publish_latency.observe(duration_seconds)

    def record_event_consumed(self, event_type: str, stored_count: int):
        """Record an event the consumer appended to the store."""
        self.events_consumed_total.labels(event_type=event_type).inc()
        self.events_stored.set(stored_count)
