from quinielas.services.scheduler_service import SchedulerService


def test_interval_never_shorter_than_fixture_cache():
    assert SchedulerService._interval_minutes(
        {"SURVIVOR_RESULTS_INTERVAL_MINUTES": 10, "FIXTURES_CACHE_TTL": 1800}
    ) == 30
    assert SchedulerService._interval_minutes(
        {"SURVIVOR_RESULTS_INTERVAL_MINUTES": 60, "FIXTURES_CACHE_TTL": 1800}
    ) == 60
    assert SchedulerService._interval_minutes(
        {"SURVIVOR_RESULTS_INTERVAL_MINUTES": 1, "FIXTURES_CACHE_TTL": 90}
    ) == 2


def test_disabled_scheduler_does_not_start(app):
    service = SchedulerService(app)
    assert not service.is_running
    assert service.get_status()["jobs"] == []


def test_force_run_records_stats(app, decided_game, installed_source):
    service = SchedulerService(app)

    success, message = service.force_run()

    assert success, message
    status = service.get_status()
    assert status["stats"]["total_runs"] == 1
    assert status["stats"]["successful_runs"] == 1
    assert status["stats"]["eliminations_processed"] == 2
    assert status["stats"]["last_run"] is not None


def test_force_run_reports_failures(app, installed_source, monkeypatch):
    def boom():
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(
        "quinielas.services.scheduler_service.process_survivor_results", boom
    )
    service = SchedulerService(app)

    success, message = service.force_run()

    assert not success
    assert "database unavailable" in message
    assert service.get_status()["stats"]["failed_runs"] == 1
