"""
Prometheus metrics for the fetch and encode pipeline
"""
from prometheus_client import CollectorRegistry, Counter, Histogram
import structlog

from api.config import settings

logger = structlog.get_logger()


class PipelineMetrics:
    """Counters and histograms for fetches, encodes and housekeeping."""

    def __init__(self, enabled: bool = True):
        self.registry = CollectorRegistry()
        self.enabled = enabled

        self.fetches_total = Counter(
            "reelcast_fetches_total",
            "Source fetches by strategy and outcome",
            ["strategy", "outcome"],
            registry=self.registry,
        )

        self.fetched_bytes = Histogram(
            "reelcast_fetched_bytes",
            "Bytes staged per accepted source",
            ["strategy"],
            buckets=[64e3, 256e3, 1e6, 4e6, 10e6, 25e6, 50e6],
            registry=self.registry,
        )

        self.encodes_total = Counter(
            "reelcast_encodes_total",
            "Encodes by profile and outcome",
            ["profile", "outcome"],
            registry=self.registry,
        )

        self.encode_duration_seconds = Histogram(
            "reelcast_encode_duration_seconds",
            "Wall time spent producing one artifact",
            ["profile"],
            buckets=[1, 2, 5, 10, 30, 60, 120, 300],
            registry=self.registry,
        )

        self.purged_artifacts_total = Counter(
            "reelcast_purged_artifacts_total",
            "Artifacts removed from the output directory",
            registry=self.registry,
        )

        logger.debug("Pipeline metrics initialized", enabled=self.enabled)

    def record_fetch(self, strategy: str, outcome: str, size: int = 0) -> None:
        if not self.enabled:
            return
        self.fetches_total.labels(strategy=strategy, outcome=outcome).inc()
        if outcome == "ok":
            self.fetched_bytes.labels(strategy=strategy).observe(size)

    def record_encode(self, profile: str, outcome: str, seconds: float = 0.0) -> None:
        if not self.enabled:
            return
        self.encodes_total.labels(profile=profile, outcome=outcome).inc()
        if outcome == "ok":
            self.encode_duration_seconds.labels(profile=profile).observe(seconds)

    def record_purge(self, removed: int) -> None:
        if self.enabled and removed:
            self.purged_artifacts_total.inc(removed)


metrics = PipelineMetrics(enabled=settings.ENABLE_METRICS)
