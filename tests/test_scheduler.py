from __future__ import annotations

import pytest

from file_archiver.config import ScheduleConfig, Settings
from file_archiver.errors import ConfigurationError
from file_archiver.scheduler import ArchiveScheduler, run_scheduler


def _settings(entry, **schedule):
    return Settings(schedule=ScheduleConfig(**schedule), archive_settings=[entry])


def test_disabled_schedule(entry):
    with pytest.raises(ConfigurationError, match="disabled"):
        ArchiveScheduler(_settings(entry), install_signal_handlers=False)


def test_add_jobs_uses_cron_expression(entry):
    scheduler = ArchiveScheduler(_settings(entry, enabled=True, cron="30 4 * * 1"), install_signal_handlers=False)
    scheduler.add_jobs()

    jobs = scheduler.scheduler.get_jobs()
    assert [job.id for job in jobs] == ["archive"]
    trigger = str(jobs[0].trigger)
    assert "hour='4'" in trigger
    assert "minute='30'" in trigger


def test_invalid_cron_expression(entry):
    scheduler = ArchiveScheduler(_settings(entry, enabled=True, cron="every day"), install_signal_handlers=False)
    with pytest.raises(ConfigurationError, match="Invalid cron expression"):
        scheduler.add_jobs()


def test_signal_handlers_are_installed(entry, mocker):
    signal_mock = mocker.patch("file_archiver.scheduler.signal.signal")

    ArchiveScheduler(_settings(entry, enabled=True))

    assert signal_mock.call_count == 2


def test_run_archive_runs_engine_and_writes_metrics(entry, mocker, tmp_path):
    engine_cls = mocker.patch("file_archiver.scheduler.Engine")
    engine_cls.return_value.run.return_value = []
    metrics_file = tmp_path / "metrics.prom"
    scheduler = ArchiveScheduler(
        _settings(entry, enabled=True), metrics_file=str(metrics_file), install_signal_handlers=False
    )

    scheduler.run_archive()

    engine_cls.return_value.run.assert_called_once()
    assert metrics_file.exists()


def test_run_archive_never_raises(entry, mocker, caplog):
    engine_cls = mocker.patch("file_archiver.scheduler.Engine")
    engine_cls.return_value.run.side_effect = RuntimeError("boom")
    scheduler = ArchiveScheduler(_settings(entry, enabled=True), install_signal_handlers=False)

    scheduler.run_archive()

    assert "Archive run failed: boom" in caplog.text


def test_start_runs_immediately_when_requested(entry, mocker):
    scheduler = ArchiveScheduler(_settings(entry, enabled=True, run_on_start=True), install_signal_handlers=False)
    run_archive = mocker.patch.object(scheduler, "run_archive")
    blocking_start = mocker.patch.object(scheduler.scheduler, "start")

    scheduler.start()

    run_archive.assert_called_once()
    blocking_start.assert_called_once()
    assert len(scheduler.scheduler.get_jobs()) == 1


def test_run_scheduler_exits_on_bad_config(tmp_path):
    with pytest.raises(SystemExit) as exc_info:
        run_scheduler(str(tmp_path / "missing.yaml"))
    assert exc_info.value.code == 1
