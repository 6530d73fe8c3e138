"""
Sync Service - Local <-> remote store synchronization

Tables are copied in dependency order and matched by primary key: rows
missing on the target are inserted with their original keys, rows whose
values differ are updated. Nothing is ever deleted by a sync.

Only one run executes at a time per service instance; a second caller gets
SYNC_IN_PROGRESS instead of waiting.
"""
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple
from sqlalchemy import and_, insert, select, text, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
import threading
import logging

from reliefops.core.database import Base, build_engine
from reliefops.core.errors import ErrorCode, LedgerError, ServiceError, as_service_error
from reliefops.core.identity_insert import allow_explicit_key_insert
from reliefops.models import SyncLog, SyncStatus, utcnow
from .balance_cache import BalanceCache

logger = logging.getLogger(__name__)

# Parents before children
SYNC_TABLES = (
    "app_user",
    "disaster",
    "shelter",
    "evacuee",
    "category",
    "relief_good",
    "relief_good_category",
    "stock",
    "barangay_budget",
    "barangay_budget_item",
    "resource_allocation",
    "resource_distribution",
)

BUDGET_TABLES = ("barangay_budget", "barangay_budget_item")

Stats = Dict[str, Dict[str, int]]


def _comparable(value: Any) -> Any:
    # SQLite drops tzinfo; compare timestamps on their wall-clock value
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.replace(tzinfo=None)
    return value


def copy_table(source: Connection, target: Connection, table_name: str) -> Dict[str, int]:
    """Bring target's rows of one table up to date with source's"""
    table = Base.metadata.tables[table_name]
    pk_cols = list(table.primary_key.columns)

    def key_of(row) -> Tuple:
        return tuple(row[c.name] for c in pk_cols)

    existing = {key_of(r): r for r in target.execute(select(table)).mappings()}

    to_insert = []
    updated = 0
    for row in source.execute(select(table).order_by(*pk_cols)).mappings():
        current = existing.get(key_of(row))
        if current is None:
            to_insert.append(dict(row))
            continue
        changes = {
            c.name: row[c.name]
            for c in table.columns
            if not c.primary_key and _comparable(row[c.name]) != _comparable(current[c.name])
        }
        if changes:
            target.execute(
                update(table)
                .where(and_(*[c == row[c.name] for c in pk_cols]))
                .values(**changes)
            )
            updated += 1

    if to_insert:
        with allow_explicit_key_insert(target, table_name):
            target.execute(insert(table), to_insert)

    return {"inserted": len(to_insert), "updated": updated}


def copy_all(source: Connection, target: Connection) -> Stats:
    stats = {}
    for table_name in SYNC_TABLES:
        stats[table_name] = copy_table(source, target, table_name)
    return stats


class SyncService:
    """Pull / push between the local store and a remote store"""

    def __init__(
        self,
        local_engine: Engine,
        remote_engine: Optional[Engine] = None,
        remote_url: Optional[str] = None,
        cache: Optional[BalanceCache] = None,
    ):
        self.local_engine = local_engine
        self.cache = cache
        if remote_engine is None and remote_url:
            remote_engine = build_engine(remote_url)
        self.remote_engine = remote_engine
        self._session_factory: Callable = sessionmaker(bind=local_engine, autoflush=False)
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def check_online(self) -> bool:
        """Whether the remote store is configured and answers a trivial query"""
        if self.remote_engine is None:
            return False
        try:
            with self.remote_engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning(f"Remote store unreachable: {e}")
            return False

    # ===================== RUNS =====================

    def pull(self) -> Tuple[Optional[Dict], Optional[ServiceError]]:
        """Remote -> local"""
        return self._run("pull", self._pull)

    def push(self) -> Tuple[Optional[Dict], Optional[ServiceError]]:
        """Local -> remote, in one remote transaction"""
        return self._run("push", self._push)

    def sync_now(self) -> Tuple[Optional[Dict], Optional[ServiceError]]:
        """Pull then push"""
        def both() -> Dict[str, Stats]:
            pulled = self._pull()
            pushed = self._push()
            return {**pulled, **pushed}
        return self._run("full", both)

    def _pull(self) -> Dict[str, Stats]:
        with self.remote_engine.connect() as remote, self.local_engine.begin() as local:
            stats = copy_all(remote, local)
        if self.cache is not None and any(
            stats[name]["inserted"] or stats[name]["updated"] for name in BUDGET_TABLES
        ):
            self.cache.clear()
            logger.info("Balance cache cleared after pulling budget changes")
        return {"pulled": stats}

    def _push(self) -> Dict[str, Stats]:
        with self.local_engine.connect() as local, self.remote_engine.begin() as remote:
            return {"pushed": copy_all(local, remote)}

    def _run(self, direction: str, work: Callable[[], Dict]) -> Tuple[Optional[Dict], Optional[ServiceError]]:
        if not self._lock.acquire(blocking=False):
            logger.info(f"Sync ({direction}) skipped: another run is in progress")
            return None, ServiceError(ErrorCode.SYNC_IN_PROGRESS, "A sync is already in progress.")

        try:
            if not self.check_online():
                return None, ServiceError(ErrorCode.REMOTE_OFFLINE, "Remote database is not reachable.")

            log_id = self._start_log(direction)
            try:
                stats = work()
            except (LedgerError, SQLAlchemyError) as e:
                error = as_service_error(e)
                logger.error(f"Sync ({direction}) failed: {error.message}")
                self._finish_log(log_id, SyncStatus.FAILED, error_message=error.message)
                return None, error
            except Exception as e:
                logger.exception(f"Sync ({direction}) crashed")
                self._finish_log(log_id, SyncStatus.FAILED, error_message=f"{type(e).__name__}: {e}")
                raise

            self._finish_log(log_id, SyncStatus.SUCCESS, stats=stats)
            logger.info(f"Sync ({direction}) completed: {stats}")
            return stats, None
        finally:
            self._lock.release()

    # ===================== SYNC LOG =====================

    def _start_log(self, direction: str) -> int:
        db = self._session_factory()
        try:
            entry = SyncLog(started_at=utcnow(), status=SyncStatus.RUNNING.value, direction=direction, stats={})
            db.add(entry)
            db.commit()
            return entry.id
        finally:
            db.close()

    def _finish_log(self, log_id: int, status: SyncStatus, stats: Optional[Dict] = None,
                    error_message: Optional[str] = None):
        db = self._session_factory()
        try:
            entry = db.get(SyncLog, log_id)
            entry.status = status.value
            entry.completed_at = utcnow()
            if stats is not None:
                entry.stats = stats
            if error_message:
                entry.error_message = error_message[:500]
            db.commit()
        finally:
            db.close()

    def recent_runs(self, limit: int = 20):
        db = self._session_factory()
        try:
            rows = db.query(SyncLog).order_by(SyncLog.started_at.desc(), SyncLog.id.desc()).limit(limit).all()
            db.expunge_all()
            return rows
        finally:
            db.close()
