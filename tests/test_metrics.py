"""
Tests for pipeline metrics
"""
import pytest
from fastapi.testclient import TestClient

from api.config import settings
from api.main import app
from api.services.metrics import PipelineMetrics


@pytest.mark.unit
def test_counters_and_histograms():
    m = PipelineMetrics()
    m.record_fetch("streamed", "ok", 2048)
    m.record_fetch("streamed", "too_large")
    m.record_encode("baseline", "ok", 1.5)
    m.record_purge(2)
    m.record_purge(0)

    sample = m.registry.get_sample_value
    assert sample("reelcast_fetches_total", {"strategy": "streamed", "outcome": "ok"}) == 1
    assert sample("reelcast_fetches_total", {"strategy": "streamed", "outcome": "too_large"}) == 1
    assert sample("reelcast_fetched_bytes_sum", {"strategy": "streamed"}) == 2048
    assert sample("reelcast_encode_duration_seconds_count", {"profile": "baseline"}) == 1
    assert sample("reelcast_purged_artifacts_total") == 2


@pytest.mark.unit
def test_disabled_metrics_record_nothing():
    m = PipelineMetrics(enabled=False)
    m.record_fetch("buffered", "ok", 10)
    m.record_encode("compressed", "error")

    assert m.registry.get_sample_value("reelcast_fetches_total", {"strategy": "buffered", "outcome": "ok"}) is None


@pytest.mark.integration
@pytest.mark.skipif(not settings.ENABLE_METRICS, reason="metrics endpoint disabled")
def test_metrics_endpoint(app_workspace):
    response = TestClient(app).get("/metrics/")
    assert response.status_code == 200
    assert "reelcast_fetches_total" in response.text
