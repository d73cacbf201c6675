import threading
from datetime import datetime, timedelta

from extensions import db
from models import Complaint, ComplaintEdit, ComplaintVote, Notification
from utils import retention_sweeper
from utils.retention_sweeper import (
    RetentionSweeper,
    purge_expired_withdrawals,
    run_retention_sweep,
    start_retention_sweeper,
)

NOW = datetime(2026, 6, 1, 0, 0, 0)


def test_purge_removes_only_expired_withdrawals(app_ctx, make_complaint):
    expired = make_complaint(status="Withdrawn", withdrawn_at=NOW - timedelta(days=31))
    recent = make_complaint(status="Withdrawn", withdrawn_at=NOW - timedelta(days=29))
    active = make_complaint(status="Open", created_at=NOW - timedelta(days=400))

    purged = purge_expired_withdrawals(now=NOW, retention_days=30)

    assert purged == 1
    assert db.session.get(Complaint, expired) is None
    assert db.session.get(Complaint, recent) is not None
    assert db.session.get(Complaint, active) is not None


def test_purge_is_safe_to_repeat(app_ctx, make_complaint):
    make_complaint(status="Withdrawn", withdrawn_at=NOW - timedelta(days=60))
    assert purge_expired_withdrawals(now=NOW, retention_days=30) == 1
    assert purge_expired_withdrawals(now=NOW, retention_days=30) == 0


def test_purge_cascades_votes_and_edits_and_detaches_notifications(app_ctx, seed, make_complaint):
    complaint_id = make_complaint(status="Withdrawn", withdrawn_at=NOW - timedelta(days=45), votes=1)
    db.session.add_all(
        [
            ComplaintVote(complaint_id=complaint_id, voter_key=f"user:{seed.bob}"),
            ComplaintEdit(
                complaint_id=complaint_id,
                old_title="a",
                old_description="b",
                new_title="c",
                new_description="d",
                edited_by=seed.alice,
                edited_at=NOW - timedelta(days=50),
            ),
            Notification(
                org_id=seed.city,
                complaint_id=complaint_id,
                type="complaint_withdrawn",
                message=f"Complaint #{complaint_id} withdrawn by the user",
            ),
        ]
    )
    db.session.commit()

    purge_expired_withdrawals(now=NOW, retention_days=30)

    assert ComplaintVote.query.filter_by(complaint_id=complaint_id).count() == 0
    assert ComplaintEdit.query.filter_by(complaint_id=complaint_id).count() == 0
    notification = Notification.query.one()
    assert notification.complaint_id is None
    assert notification.org_id == seed.city


def test_sweep_uses_configured_retention(app, make_complaint):
    app.config["WITHDRAW_RETENTION_DAYS"] = 3
    complaint_id = make_complaint(status="Withdrawn", withdrawn_at=datetime.utcnow() - timedelta(days=4))

    run_retention_sweep(app)

    with app.app_context():
        assert db.session.get(Complaint, complaint_id) is None


def test_sweep_failure_is_logged_not_raised(app, monkeypatch, caplog):
    def boom(*args, **kwargs):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(retention_sweeper, "purge_expired_withdrawals", boom)
    app.logger.addHandler(caplog.handler)
    try:
        run_retention_sweep(app)
    finally:
        app.logger.removeHandler(caplog.handler)

    assert any("Retention sweep failed" in record.getMessage() for record in caplog.records)


def test_sweeper_thread_runs_and_stops(app, monkeypatch):
    ran = threading.Event()
    monkeypatch.setattr(retention_sweeper, "run_retention_sweep", lambda _app: ran.set())

    sweeper = RetentionSweeper(app, interval=timedelta(hours=1), initial_delay=0)
    sweeper.start()
    try:
        assert ran.wait(5)
        assert sweeper.running
    finally:
        sweeper.stop(timeout=5)
    assert not sweeper.running


def test_sweeper_stopped_during_initial_delay_never_runs(app, monkeypatch):
    calls = []
    monkeypatch.setattr(retention_sweeper, "run_retention_sweep", lambda _app: calls.append(_app))

    sweeper = RetentionSweeper(app, interval=timedelta(hours=1), initial_delay=60)
    sweeper.start()
    sweeper.stop(timeout=5)

    assert calls == []
    assert not sweeper.running


def test_sweeper_is_disabled_under_testing_config(app):
    assert start_retention_sweeper(app) is None
    assert app.extensions["retention_sweeper"].running is False


def test_app_factory_leaves_an_enabled_sweeper_idle(tmp_path, monkeypatch):
    import config

    class SweeperEnabledConfig(config.TestingConfig):
        def __init__(self) -> None:
            super().__init__()
            self.RETENTION_SWEEPER_ENABLED = True

    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("TEST_DATABASE_URL", raising=False)
    monkeypatch.setattr(config, "TestingConfig", SweeperEnabledConfig)
    from app import create_app

    application = create_app("testing")
    sweeper = application.extensions["retention_sweeper"]
    assert not sweeper.running

    started = start_retention_sweeper(application)
    try:
        assert started is sweeper
        assert sweeper.running
    finally:
        sweeper.stop(timeout=5)
