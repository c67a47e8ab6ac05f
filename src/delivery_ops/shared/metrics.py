"""Prometheus metrics for the delivery lifecycle, change feed and simulation."""
import time

from prometheus_client import REGISTRY, Counter, Gauge, Histogram


def _get_or_create_metric(metric_class, name: str, doc: str, labelnames=None, **kwargs):
    """Get existing metric or create new one to avoid duplication errors in tests."""
    for collector in list(REGISTRY._collector_to_names.keys()):
        if hasattr(collector, "_name") and collector._name == name:
            return collector
    try:
        if labelnames is not None:
            kwargs["labelnames"] = labelnames
        return metric_class(name, doc, registry=REGISTRY, **kwargs)
    except ValueError as e:
        if "Duplicated timeseries" in str(e):
            # Race condition - try to find it again
            for collector in list(REGISTRY._collector_to_names.keys()):
                if hasattr(collector, "_name") and collector._name == name:
                    return collector
        raise


# Lifecycle metrics
transitions_total = _get_or_create_metric(
    Counter,
    "delivery_transitions_total",
    "Total number of delivery status transitions persisted",
    ["status", "source"],
)

transitions_rejected_total = _get_or_create_metric(
    Counter,
    "delivery_transitions_rejected_total",
    "Total number of transitions rejected by the lifecycle precondition",
    ["reason"],
)

# Simulation metrics
simulation_ticks_total = _get_or_create_metric(
    Counter,
    "simulation_ticks_total",
    "Total number of simulation ticks executed",
    ["outcome"],
)

simulation_deliveries_created_total = _get_or_create_metric(
    Counter,
    "simulation_deliveries_created_total",
    "Total number of deliveries inserted by the simulator",
)

simulation_active = _get_or_create_metric(
    Gauge, "simulation_active", "Whether simulation is currently active (1) or not (0)"
)

simulation_uptime_seconds = _get_or_create_metric(
    Gauge, "simulation_uptime_seconds", "How long simulation has been active (seconds)"
)

tick_duration_seconds = _get_or_create_metric(
    Histogram,
    "simulation_tick_duration_seconds",
    "Time taken to execute one simulation tick",
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0],
)

# Change feed metrics
change_events_total = _get_or_create_metric(
    Counter,
    "change_events_total",
    "Total number of change events published",
    ["table", "event_kind"],
)

change_feed_subscriptions = _get_or_create_metric(
    Gauge, "change_feed_subscriptions", "Number of live change feed registrations"
)

# Aggregate cache metrics
aggregate_cache_hits_total = _get_or_create_metric(
    Counter, "aggregate_cache_hits_total", "Aggregate reads served from cache", ["shape"]
)

aggregate_cache_misses_total = _get_or_create_metric(
    Counter,
    "aggregate_cache_misses_total",
    "Aggregate reads that triggered a recomputation",
    ["shape", "reason"],
)

aggregate_invalidations_total = _get_or_create_metric(
    Counter,
    "aggregate_invalidations_total",
    "Aggregates marked stale by change notifications",
    ["table"],
)


class MetricsCollector:
    """Helper class for collecting and updating metrics."""

    def __init__(self):
        self.start_time = None

    def start_simulation(self):
        """Mark simulation as started."""
        simulation_active.set(1)
        self.start_time = time.time()

    def stop_simulation(self):
        """Mark simulation as stopped."""
        simulation_active.set(0)
        self.start_time = None

    def record_transition(self, status: str, source: str):
        """Record a persisted status transition."""
        transitions_total.labels(status=status, source=source).inc()

    def record_transition_rejected(self, reason: str):
        """Record a transition rejected by the precondition."""
        transitions_rejected_total.labels(reason=reason).inc()

    def record_tick(self, outcome: str, duration: float):
        """Record a finished simulation tick."""
        simulation_ticks_total.labels(outcome=outcome).inc()
        tick_duration_seconds.observe(duration)

    def record_deliveries_created(self, count: int):
        """Record deliveries inserted by the simulator."""
        if count > 0:
            simulation_deliveries_created_total.inc(count)

    def record_change_event(self, table: str, event_kind: str):
        """Record a published change event."""
        change_events_total.labels(table=table, event_kind=event_kind).inc()

    def update_subscription_count(self, count: int):
        """Update the live change feed registration gauge."""
        change_feed_subscriptions.set(count)

    def record_cache_hit(self, shape: str):
        """Record an aggregate served from cache."""
        aggregate_cache_hits_total.labels(shape=shape).inc()

    def record_cache_miss(self, shape: str, reason: str):
        """Record an aggregate recomputation."""
        aggregate_cache_misses_total.labels(shape=shape, reason=reason).inc()

    def record_invalidation(self, table: str, count: int):
        """Record aggregates invalidated for a table."""
        if count > 0:
            aggregate_invalidations_total.labels(table=table).inc(count)

    def update_uptime(self):
        """Update simulation uptime."""
        if self.start_time:
            uptime = time.time() - self.start_time
            simulation_uptime_seconds.set(uptime)


# Global metrics collector instance
metrics_collector = MetricsCollector()
