from brezcode import scheduler


class _Service:
    def __init__(self, result=None, error=None):
        self.result = result or []
        self.error = error
        self.thresholds = []

    def cleanup_abandoned_sessions(self, hours):
        self.thresholds.append(hours)
        if self.error:
            raise self.error
        return self.result


def test_run_cleanup_passes_threshold():
    svc = _Service(result=["session_1_abc"])
    assert scheduler.run_cleanup(lambda: svc, hours=5) == ["session_1_abc"]
    assert svc.thresholds == [5]


def test_run_cleanup_defaults_to_configured_hours():
    svc = _Service()
    scheduler.run_cleanup(lambda: svc)
    assert svc.thresholds == [scheduler.settings.CLEANUP_ABANDONED_HOURS]


def test_run_cleanup_logs_and_survives_errors(capsys):
    svc = _Service(error=RuntimeError("db down"))
    assert scheduler.run_cleanup(lambda: svc) == []
    assert "[scheduler] cleanup failed" in capsys.readouterr().out


def test_zero_interval_schedules_nothing():
    assert scheduler.schedule_cleanup(lambda: _Service(), interval_minutes=0) is False
    assert scheduler.scheduler.get_job(scheduler.CLEANUP_JOB_ID) is None
