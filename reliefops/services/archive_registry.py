"""
Archivable entity registry

Each archivable entity is registered under a tag with its mapped model and
any owned child collections. The registry entry knows how to snapshot a row
into JSON-safe column values, how to decode a snapshot back into typed
column values, and how to remove the row (children first) without going
through ORM cascades.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, Type
import json

from sqlalchemy import Boolean, DateTime, Integer, Numeric, Table, delete, insert, select, update
from sqlalchemy.orm import Session

from reliefops.core.identity_insert import allow_explicit_key_insert
from reliefops.models import (
    BarangayBudget, BarangayBudgetItem, Category, Disaster, ReliefGood, Shelter, Stock
)

CHILDREN_KEY = "_children"

# Tried in order; first match wins
DISPLAY_NAME_FIELDS = (("first_name", "last_name"), ("name",), ("title",), ("barangay_name",), ("description",))


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def _decode(column, value: Any) -> Any:
    if value is None:
        return None
    col_type = column.type
    if isinstance(col_type, DateTime):
        if not isinstance(value, str):
            raise TypeError(f"{column.name}: expected ISO timestamp, got {value!r}")
        return datetime.fromisoformat(value)
    if isinstance(col_type, Numeric):
        return Decimal(str(value))
    if isinstance(col_type, Boolean):
        if not isinstance(value, (bool, int)):
            raise TypeError(f"{column.name}: expected boolean, got {value!r}")
        return bool(value)
    if isinstance(col_type, Integer):
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise TypeError(f"{column.name}: expected integer, got {value!r}")
        return int(value)
    return value


def snapshot_row(table: Table, row: Any) -> Dict[str, Any]:
    """Column values of an ORM instance or Core row, JSON-safe"""
    mapping = getattr(row, "_mapping", None)
    if mapping is not None:
        return {c.name: _encode(mapping[c.name]) for c in table.columns}
    return {c.name: _encode(getattr(row, c.key)) for c in table.columns}


def decode_row(table: Table, data: Any) -> Dict[str, Any]:
    """Typed column values from a snapshot; keys that are not columns are ignored"""
    if not isinstance(data, dict):
        raise TypeError(f"Snapshot for {table.name} must be an object")
    return {c.name: _decode(c, data[c.name]) for c in table.columns if c.name in data}


def upsert_row(db: Session, table: Table, values: Dict[str, Any]) -> bool:
    """Update the row with this primary key in place, or insert it with its original key.

    Returns True when the row was inserted.
    """
    pk = table.c.id
    exists = db.execute(select(pk).where(pk == values["id"])).first() is not None
    if exists:
        changes = {k: v for k, v in values.items() if k != "id"}
        if changes:
            db.execute(update(table).where(pk == values["id"]).values(**changes))
        return False
    with allow_explicit_key_insert(db, table.name):
        db.execute(insert(table).values(**values))
    return True


def derive_display_name(instance: Any, fallback: str) -> str:
    """Best-effort human name for an archived record"""
    for fields in DISPLAY_NAME_FIELDS:
        parts = [getattr(instance, f, None) for f in fields]
        if all(isinstance(p, str) and p.strip() for p in parts):
            return " ".join(p.strip() for p in parts)
    return fallback


@dataclass(frozen=True)
class ChildCollection:
    """Rows owned by the archived entity through a foreign key"""
    model: Type
    foreign_key: str

    @property
    def table(self) -> Table:
        return self.model.__table__


@dataclass(frozen=True)
class ArchivableEntity:
    tag: str
    model: Type
    children: Tuple[ChildCollection, ...] = ()

    @property
    def table(self) -> Table:
        return self.model.__table__

    @property
    def table_name(self) -> str:
        return self.table.name

    def primary_key(self, instance: Any) -> int:
        return instance.id

    def load(self, db: Session, entity_id: int) -> Optional[Any]:
        return db.get(self.model, entity_id)

    def serialize(self, db: Session, instance: Any) -> str:
        data = snapshot_row(self.table, instance)
        if self.children:
            owned = {}
            for child in self.children:
                fk = child.table.c[child.foreign_key]
                rows = db.execute(
                    select(child.table).where(fk == self.primary_key(instance)).order_by(child.table.c.id)
                ).all()
                owned[child.table.name] = [snapshot_row(child.table, r) for r in rows]
            data[CHILDREN_KEY] = owned
        return json.dumps(data, sort_keys=True)

    def deserialize(self, payload: str) -> Tuple[Dict[str, Any], Dict[str, List[Dict[str, Any]]]]:
        """Decode a snapshot into (column values, {child table: [column values]}).

        Raises ValueError or TypeError when the payload does not fit the model.
        """
        data = json.loads(payload)
        if not isinstance(data, dict):
            raise TypeError(f"Snapshot for {self.tag} must be an object")
        raw_children = data.get(CHILDREN_KEY) or {}
        if not isinstance(raw_children, dict):
            raise TypeError(f"Snapshot children for {self.tag} must be an object")
        values = decode_row(self.table, data)

        children = {}
        for child in self.children:
            rows = raw_children.get(child.table.name) or []
            if not isinstance(rows, list):
                raise TypeError(f"Snapshot rows for {child.table.name} must be a list")
            decoded = [decode_row(child.table, r) for r in rows]
            if any(r.get("id") is None for r in decoded):
                raise ValueError(f"Snapshot row for {child.table.name} has no id")
            children[child.table.name] = decoded
        return values, children

    def remove(self, db: Session, entity_id: int):
        """Delete the row and its owned children with Core statements"""
        for child in self.children:
            db.execute(delete(child.table).where(child.table.c[child.foreign_key] == entity_id))
        db.execute(delete(self.table).where(self.table.c.id == entity_id))

    def reinsert(self, db: Session, entity_id: int, values: Dict[str, Any],
                 children: Dict[str, List[Dict[str, Any]]]) -> bool:
        """Write the row back under its original id, then its children. True if inserted."""
        values = dict(values, id=entity_id)
        inserted = upsert_row(db, self.table, values)
        for child in self.children:
            for row in children.get(child.table.name, []):
                row = dict(row)
                row[child.foreign_key] = entity_id
                upsert_row(db, child.table, row)
        return inserted


ARCHIVE_REGISTRY: Dict[str, ArchivableEntity] = {
    entry.tag: entry
    for entry in (
        ArchivableEntity("Category", Category),
        ArchivableEntity("ReliefGood", ReliefGood),
        ArchivableEntity("Disaster", Disaster),
        ArchivableEntity("Shelter", Shelter),
        ArchivableEntity("Stock", Stock),
        ArchivableEntity(
            "BarangayBudget",
            BarangayBudget,
            children=(ChildCollection(BarangayBudgetItem, "budget_id"),),
        ),
    )
}


def get_archivable(tag: str) -> Optional[ArchivableEntity]:
    return ARCHIVE_REGISTRY.get(tag)
