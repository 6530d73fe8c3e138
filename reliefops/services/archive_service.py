"""
Archive Service - Soft delete into a generic envelope, restore with original ids
"""
from decimal import InvalidOperation
from typing import Dict, List, Optional, Tuple
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from reliefops.core.errors import ErrorCode, LedgerError, ServiceError, as_service_error
from reliefops.core.identity import IdentityProvider
from reliefops.core.transaction import CancellationToken, ledger_transaction
from reliefops.models import Archive, AuditSeverity, utcnow
from .archive_registry import ARCHIVE_REGISTRY, ArchivableEntity, derive_display_name, get_archivable
from .audit_service import AuditService
from .balance_cache import BalanceCache

logger = logging.getLogger(__name__)


class ArchiveService:
    """Archive / restore any registered entity"""

    def __init__(
        self,
        db: Session,
        audit: AuditService,
        identity: Optional[IdentityProvider] = None,
        cache: Optional[BalanceCache] = None,
    ):
        self.db = db
        self.audit = audit
        self.identity = identity or audit.identity
        self.cache = cache

    def _entry(self, entity_type: str) -> ArchivableEntity:
        entry = get_archivable(entity_type)
        if entry is None:
            raise LedgerError(
                ErrorCode.TYPE_MISMATCH,
                f"Entity type '{entity_type}' cannot be archived.",
                supported=sorted(ARCHIVE_REGISTRY),
            )
        return entry

    def _invalidate_balance(self, entity_type: str, entity_id: int):
        if self.cache is not None and entity_type == "BarangayBudget":
            self.cache.invalidate(entity_id)

    def _fail(self, action: str, entity_type: str, entity_id: Optional[int], exc: Exception) -> ServiceError:
        error = as_service_error(exc)
        logger.warning(f"{action} failed for {entity_type} #{entity_id}: {error.message}")
        self.audit.log_failure(action, entity_type, entity_id, error)
        return error

    # ===================== ARCHIVE =====================

    def archive(
        self,
        entity_type: str,
        entity_id: int,
        reason: Optional[str] = None,
        display_name: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> Tuple[bool, Optional[ServiceError]]:
        """
        Snapshot the row into an Archive envelope and delete it.

        The row is loaded by primary key regardless of its active flag. Only
        the row itself (and, for budgets, its owned items) is deleted; any
        other referencing rows are left to the schema's FK rules.
        """
        try:
            with ledger_transaction(self.db, cancel):
                entry = self._entry(entity_type)
                instance = entry.load(self.db, entity_id)
                if instance is None:
                    raise LedgerError.not_found(f"{entity_type} #{entity_id} not found.")

                payload = entry.serialize(self.db, instance)
                name = display_name or derive_display_name(instance, f"{entity_type} #{entity_id}")

                envelope = Archive(
                    entity_type=entity_type,
                    entity_id=entity_id,
                    archived_data=payload,
                    archived_at=utcnow(),
                    archived_by=self.identity.user_id,
                    archive_reason=reason or "Archived by user",
                    entity_name=name[:200],
                )
                self.db.add(envelope)

                # Detach so the ORM does not try to cascade to relationships
                self.db.expunge(instance)
                entry.remove(self.db, entity_id)
                self.db.flush()
        except (LedgerError, SQLAlchemyError) as e:
            return False, self._fail("ARCHIVE", entity_type, entity_id, e)

        self._invalidate_balance(entity_type, entity_id)
        logger.info(f"Archived {entity_type} #{entity_id} ({name}) as archive #{envelope.id}")
        self.audit.log(
            action="ARCHIVE",
            entity_type=entity_type,
            entity_id=entity_id,
            new_values={"archive_id": envelope.id, "entity_name": name, "reason": envelope.archive_reason},
            description=f"Archived {entity_type}: {name}",
        )
        return True, None

    # ===================== RESTORE =====================

    def restore(
        self,
        archive_id: int,
        expected_type: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> Tuple[bool, Optional[ServiceError]]:
        """
        Write the archived row back under its original id and drop the envelope.

        If a row with that id exists it is updated in place. Explicit key
        insertion is scoped to the single table and released on every path.
        """
        entity_type, entity_id = None, None
        try:
            with ledger_transaction(self.db, cancel):
                envelope = self.db.get(Archive, archive_id)
                if envelope is None:
                    raise LedgerError.not_found("Archive not found.", archive_id=archive_id)
                entity_type, entity_id = envelope.entity_type, envelope.entity_id

                if expected_type is not None and expected_type != entity_type:
                    raise LedgerError(
                        ErrorCode.TYPE_MISMATCH,
                        f"Archive #{archive_id} holds {entity_type}, not {expected_type}.",
                        expected=expected_type,
                        actual=entity_type,
                    )
                entry = self._entry(entity_type)

                try:
                    values, children = entry.deserialize(envelope.archived_data)
                except (ValueError, TypeError, KeyError, InvalidOperation) as e:
                    raise LedgerError(
                        ErrorCode.DESERIALIZATION_FAILURE,
                        f"Failed to deserialize archived {entity_type}: {e}",
                    )

                inserted = entry.reinsert(self.db, entity_id, values, children)
                entity_name = envelope.entity_name
                self.db.delete(envelope)
                self.db.flush()
        except (LedgerError, SQLAlchemyError) as e:
            return False, self._fail("RESTORE", entity_type or "Archive", entity_id or archive_id, e)

        self._invalidate_balance(entity_type, entity_id)
        logger.info(f"Restored {entity_type} #{entity_id} from archive #{archive_id} ({'inserted' if inserted else 'updated'})")
        self.audit.log(
            action="RESTORE",
            entity_type=entity_type,
            entity_id=entity_id,
            new_values={"archive_id": archive_id, "entity_name": entity_name, "reinserted": inserted},
            description=f"Restored {entity_type}: {entity_name}",
        )
        return True, None

    # ===================== BROWSE =====================

    def list_archives(self, entity_type: Optional[str] = None) -> List[Archive]:
        query = self.db.query(Archive)
        if entity_type:
            query = query.filter(Archive.entity_type == entity_type)
        return query.order_by(Archive.archived_at.desc(), Archive.id.desc()).all()

    def get_archive(self, archive_id: int) -> Optional[Archive]:
        return self.db.get(Archive, archive_id)

    def search_archives(self, term: str) -> List[Archive]:
        if not term or not term.strip():
            return self.list_archives()
        pattern = f"%{term.strip().lower()}%"
        return (
            self.db.query(Archive)
            .filter(or_(
                func.lower(Archive.entity_type).like(pattern),
                func.lower(Archive.entity_name).like(pattern),
                func.lower(Archive.archive_reason).like(pattern),
            ))
            .order_by(Archive.archived_at.desc(), Archive.id.desc())
            .all()
        )

    def counts_by_type(self) -> Dict[str, int]:
        rows = (
            self.db.query(Archive.entity_type, func.count(Archive.id))
            .group_by(Archive.entity_type)
            .all()
        )
        return {entity_type: count for entity_type, count in rows}

    def delete_permanently(
        self, archive_id: int, cancel: Optional[CancellationToken] = None
    ) -> Tuple[bool, Optional[ServiceError]]:
        try:
            with ledger_transaction(self.db, cancel):
                envelope = self.db.get(Archive, archive_id)
                if envelope is None:
                    raise LedgerError.not_found("Archive not found.", archive_id=archive_id)
                old_values = {
                    "entity_type": envelope.entity_type,
                    "entity_id": envelope.entity_id,
                    "entity_name": envelope.entity_name,
                }
                self.db.delete(envelope)
        except (LedgerError, SQLAlchemyError) as e:
            return False, self._fail("PERMANENT_DELETE", "Archive", archive_id, e)

        self._invalidate_balance(old_values["entity_type"], old_values["entity_id"])
        logger.info(f"Archive #{archive_id} permanently deleted ({old_values['entity_type']} #{old_values['entity_id']})")
        self.audit.log(
            action="PERMANENT_DELETE",
            entity_type=old_values["entity_type"],
            entity_id=old_values["entity_id"],
            old_values=old_values,
            description=f"Permanently deleted archived {old_values['entity_type']}: {old_values['entity_name']}",
            severity=AuditSeverity.WARNING.value,
        )
        return True, None
