"""Prometheus metrics instrumentation for PropInspect."""

from prometheus_client import Counter, Histogram
from prometheus_fastapi_instrumentator import Instrumentator, metrics

# Inspection patches, by outcome (updated, unchanged, rejected)
inspection_updates_total = Counter(
    "propinspect_inspection_updates_total",
    "Total number of inspection patches processed",
    ["outcome"],
)

# Template patches, by outcome (updated, unchanged, rejected)
template_updates_total = Counter(
    "propinspect_template_updates_total",
    "Total number of template patches processed",
    ["outcome"],
)

# Deficiency record operations, by action (created, updated, archived, failed)
deficiency_operations_total = Counter(
    "propinspect_deficiency_operations_total",
    "Total number of deficient item record operations",
    ["action"],
)

# Update engine run time
update_engine_time = Histogram(
    "propinspect_update_engine_seconds",
    "Time spent computing document updates",
    ["engine"],
    buckets=[0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
)


def setup_metrics(app) -> Instrumentator:
    """Set up Prometheus metrics instrumentation for FastAPI app."""
    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/health", "/metrics"],
        env_var_name="METRICS_ENABLED",
        inprogress_name="http_requests_inprogress",
        inprogress_labels=True,
    )

    instrumentator.add(
        metrics.default(
            metric_namespace="",
            metric_subsystem="",
            latency_highr_buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )
    )

    instrumentator.instrument(app)

    return instrumentator


def expose_metrics(app, instrumentator: Instrumentator) -> None:
    """Expose the /metrics endpoint."""
    instrumentator.expose(app, include_in_schema=False, should_gzip=True)


def record_inspection_update(outcome: str) -> None:
    inspection_updates_total.labels(outcome=outcome).inc()


def record_template_update(outcome: str) -> None:
    template_updates_total.labels(outcome=outcome).inc()


def record_deficiency_operation(action: str, count: int = 1) -> None:
    """Increment deficiency operation counter."""
    if count:
        deficiency_operations_total.labels(action=action).inc(count)


def observe_update_engine(engine: str, duration: float) -> None:
    """Record update engine duration."""
    update_engine_time.labels(engine=engine).observe(duration)
