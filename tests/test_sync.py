from __future__ import annotations

import threading
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from reliefops.core.errors import ErrorCode
from reliefops.jobs.sync_job import JOB_ID, SyncScheduler
from reliefops.models import BarangayBudget, Category, ReliefGood, Stock, SyncLog
from reliefops.services import BalanceCache, SyncService

from .conftest import make_engine, seed_reference_data


@pytest.fixture
def remote_engine(tmp_path):
    engine = make_engine(tmp_path / "remote.db")
    yield engine
    engine.dispose()


@pytest.fixture
def remote_session(remote_engine):
    session = sessionmaker(bind=remote_engine)()
    yield session
    session.close()


@pytest.fixture
def sync_service(engine, remote_engine):
    return SyncService(engine, remote_engine=remote_engine)


def test_pull_copies_remote_rows_with_their_ids(sync_service, remote_session, db):
    remote = seed_reference_data(remote_session)
    remote_session.add(Stock(id=40, relief_good_id=remote.good_id, quantity=12, max_capacity=100))
    remote_session.commit()

    stats, error = sync_service.pull()

    assert error is None
    assert stats["pulled"]["stock"] == {"inserted": 1, "updated": 0}
    assert stats["pulled"]["relief_good"]["inserted"] == 1
    assert db.get(Stock, 40).quantity == 12
    assert db.get(ReliefGood, remote.good_id).name == "Rice"


def test_push_updates_changed_rows_only(sync_service, remote_session, db, seed):
    sync_service.push()
    db.get(Category, seed.category_id).name = "Food & Water"
    db.commit()

    stats, error = sync_service.push()

    assert error is None
    assert stats["pushed"]["category"] == {"inserted": 0, "updated": 1}
    assert stats["pushed"]["relief_good"] == {"inserted": 0, "updated": 0}
    assert remote_session.get(Category, seed.category_id).name == "Food & Water"


def test_sync_now_pulls_then_pushes_and_logs(sync_service, remote_session, db, seed):
    remote_session.add(Category(id=90, name="Remote Only"))
    remote_session.commit()

    stats, error = sync_service.sync_now()

    assert error is None
    assert set(stats) == {"pulled", "pushed"}
    assert db.get(Category, 90).name == "Remote Only"
    assert remote_session.get(Category, seed.category_id).name == "Food"

    runs = sync_service.recent_runs()
    assert runs[0].status == "success"
    assert runs[0].direction == "full"
    assert runs[0].completed_at is not None
    assert db.query(SyncLog).count() == 1


def test_pull_of_budget_rows_clears_balance_cache(engine, remote_engine, remote_session, seed):
    cache = BalanceCache(ttl_seconds=900)
    service = SyncService(engine, remote_engine=remote_engine, cache=cache)
    service.push()
    remote_session.add(BarangayBudget(id=50, barangay_name="Apas", year=2025, total_amount=Decimal("800")))
    remote_session.commit()
    cache.set(50, Decimal("1.00"))
    cache.set(51, Decimal("2.00"))

    stats, error = service.pull()

    assert error is None
    assert stats["pulled"]["barangay_budget"] == {"inserted": 1, "updated": 0}
    assert len(cache) == 0


def test_pull_without_budget_changes_keeps_cache(engine, remote_engine, seed):
    cache = BalanceCache(ttl_seconds=900)
    service = SyncService(engine, remote_engine=remote_engine, cache=cache)
    service.push()
    cache.set(51, Decimal("2.00"))

    _, error = service.pull()

    assert error is None
    assert 51 in cache


def test_unexpected_failure_marks_run_failed(sync_service, monkeypatch):
    def broken_pull():
        raise KeyError("stock")

    monkeypatch.setattr(sync_service, "_pull", broken_pull)

    with pytest.raises(KeyError):
        sync_service.pull()

    run = sync_service.recent_runs()[0]
    assert run.status == "failed"
    assert run.completed_at is not None
    assert "KeyError" in run.error_message
    assert not sync_service.is_running


def test_offline_remote(engine):
    service = SyncService(engine)

    assert service.check_online() is False
    stats, error = service.sync_now()
    assert stats is None
    assert error.code == ErrorCode.REMOTE_OFFLINE


def test_overlapping_runs_are_refused(sync_service, monkeypatch):
    started, release = threading.Event(), threading.Event()
    results = []

    def slow_pull():
        started.set()
        release.wait(5)
        return {"pulled": {}}

    monkeypatch.setattr(sync_service, "_pull", slow_pull)
    monkeypatch.setattr(sync_service, "_push", lambda: {"pushed": {}})

    worker = threading.Thread(target=lambda: results.append(sync_service.sync_now()))
    worker.start()
    assert started.wait(5)

    assert sync_service.is_running
    stats, error = sync_service.sync_now()
    assert stats is None
    assert error.code == ErrorCode.SYNC_IN_PROGRESS

    release.set()
    worker.join(5)
    assert results[0] == ({"pulled": {}, "pushed": {}}, None)
    assert not sync_service.is_running


def test_scheduler_job_is_single_instance(sync_service):
    scheduler = SyncScheduler(sync_service, interval_minutes=5)
    scheduler.start()
    try:
        job = scheduler.scheduler.get_job(JOB_ID)
        assert job.max_instances == 1
        assert job.coalesce is True
    finally:
        scheduler.stop()
    assert not scheduler.is_running


def test_scheduler_disabled_with_zero_interval(sync_service):
    scheduler = SyncScheduler(sync_service, interval_minutes=0)
    scheduler.start()
    assert not scheduler.is_running
