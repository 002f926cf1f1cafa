"""
메트릭 기록 테스트
"""

from userscript_bridge.monitoring.metrics import (
    REGISTRY,
    get_metrics_summary,
    record_auto_update,
    record_bridge_request,
    record_fetch,
    update_registry_metrics,
)


def sample(name, labels=None):
    return REGISTRY.get_sample_value(name, labels or {}) or 0


class TestMetrics:
    """메트릭 함수 테스트"""

    def test_record_fetch(self):
        labels = {"kind": "dependency", "status": "HTTP_STATUS_ERROR"}
        before = sample("userscript_fetch_total", labels)

        record_fetch("dependency", "HTTP_STATUS_ERROR")

        assert sample("userscript_fetch_total", labels) == before + 1

    def test_record_bridge_request(self):
        labels = {"operation": "metrics_test", "status": "error"}

        record_bridge_request("metrics_test", "error", 0.25)

        assert sample("userscript_bridge_requests_total", labels) == 1
        assert sample(
            "userscript_bridge_request_duration_seconds_sum", {"operation": "metrics_test"}
        ) == 0.25

    def test_record_auto_update(self):
        before = sample("userscript_auto_update_total", {"result": "skipped"})

        record_auto_update("skipped")

        assert sample("userscript_auto_update_total", {"result": "skipped"}) == before + 1

    def test_registry_gauge(self):
        update_registry_metrics(3)

        assert sample("userscript_registry_scripts") == 3

    def test_summary_skips_created_samples(self):
        record_fetch("script", "success")

        summary = get_metrics_summary()

        assert "timestamp" in summary
        assert "userscript_fetch_total{kind=script,status=success}" in summary
        assert not any("_created" in key for key in summary)
