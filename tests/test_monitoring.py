from ingest_crawler.utils.monitoring import MetricsCollector


def test_summary_reflects_recorded_counters():
    metrics = MetricsCollector()
    metrics.record_visit()
    metrics.record_visit()
    metrics.record_discovered(5)

    summary = metrics.get_summary()

    assert summary['pages_visited'] == 2
    assert summary['links_discovered'] == 5
    assert summary['pages_per_minute'] > 0


def test_collectors_use_private_registries():
    first, second = MetricsCollector(), MetricsCollector()
    first.record_error('http_500')

    assert first.value('crawler_errors_total', {'error_type': 'http_500'}) == 1
    assert second.value('crawler_errors_total', {'error_type': 'http_500'}) == 0
