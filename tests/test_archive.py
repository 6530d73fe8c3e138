from __future__ import annotations

import json

from reliefops.core.errors import ErrorCode
from reliefops.models import Archive, Category, Evacuee, ReliefGood, Shelter
from reliefops.services.archive_registry import ARCHIVE_REGISTRY, derive_display_name


def add_category(db, category_id=7, name="Medical Supplies"):
    db.add(Category(id=category_id, name=name, description="First aid and medicine"))
    db.commit()


def test_archive_then_restore_category(archive_service, db, seed):
    add_category(db)

    ok, error = archive_service.archive("Category", 7)

    assert ok and error is None
    assert db.get(Category, 7) is None
    envelope = db.query(Archive).filter_by(entity_type="Category", entity_id=7).one()
    assert envelope.entity_name == "Medical Supplies"
    assert envelope.archived_by == seed.user_id
    assert json.loads(envelope.archived_data)["name"] == "Medical Supplies"

    ok, error = archive_service.restore(envelope.id)

    assert ok and error is None
    restored = db.get(Category, 7)
    assert restored.name == "Medical Supplies"
    assert restored.description == "First aid and medicine"
    assert restored.is_active is True
    assert db.get(Archive, envelope.id) is None


def test_restored_key_does_not_collide_with_new_rows(archive_service, db, seed):
    add_category(db)
    archive_service.archive("Category", 7)
    envelope = db.query(Archive).one()
    archive_service.restore(envelope.id)

    fresh = Category(name="Shelter Kits")
    db.add(fresh)
    db.commit()

    assert fresh.id not in (7, seed.category_id)


def test_archive_inactive_entity(archive_service, db, seed):
    db.get(ReliefGood, seed.good_id).is_active = False
    db.commit()

    ok, error = archive_service.archive("ReliefGood", seed.good_id)

    assert ok and error is None
    assert db.get(ReliefGood, seed.good_id) is None


def test_restore_updates_existing_row_in_place(archive_service, db, seed):
    add_category(db)
    archive_service.archive("Category", 7)
    envelope = db.query(Archive).one()
    # someone recreated id 7 meanwhile
    add_category(db, name="Something Else")

    ok, error = archive_service.restore(envelope.id)

    assert ok and error is None
    db.expire_all()
    assert db.query(Category).filter_by(id=7).one().name == "Medical Supplies"


def test_archive_missing_and_unknown(archive_service, audit, seed):
    ok, error = archive_service.archive("Category", 9999)
    assert not ok
    assert error.code == ErrorCode.NOT_FOUND

    ok, error = archive_service.archive("Spaceship", 1)
    assert error.code == ErrorCode.TYPE_MISMATCH

    failures = audit.get_logs(action="ARCHIVE")
    assert all(not entry.is_successful for entry in failures)
    assert len(failures) == 2


def test_restore_type_mismatch_keeps_envelope(archive_service, db, seed):
    add_category(db)
    archive_service.archive("Category", 7)
    envelope = db.query(Archive).one()

    ok, error = archive_service.restore(envelope.id, expected_type="Shelter")

    assert not ok
    assert error.code == ErrorCode.TYPE_MISMATCH
    assert db.get(Archive, envelope.id) is not None
    assert db.get(Category, 7) is None


def test_restore_corrupt_snapshot(archive_service, db, seed):
    bad = Archive(entity_type="Category", entity_id=42, archived_data="{not json", entity_name="Broken")
    wrong_shape = Archive(entity_type="Category", entity_id=43, archived_data='{"is_active": "maybe"}')
    db.add_all([bad, wrong_shape])
    db.commit()

    for envelope_id in (bad.id, wrong_shape.id):
        ok, error = archive_service.restore(envelope_id)
        assert not ok
        assert error.code == ErrorCode.DESERIALIZATION_FAILURE
        assert db.get(Archive, envelope_id) is not None

    assert db.get(Category, 42) is None


def test_restore_missing_envelope(archive_service, seed):
    ok, error = archive_service.restore(12345)
    assert error.code == ErrorCode.NOT_FOUND


def test_archive_referenced_row_reports_constraint(stock_service, archive_service, db, seed):
    stock_service.create_stock(seed.good_id, 5, shelter_id=seed.shelter_id)

    ok, error = archive_service.archive("Shelter", seed.shelter_id)

    assert not ok
    assert error.code == ErrorCode.FOREIGN_KEY
    assert db.get(Shelter, seed.shelter_id) is not None
    assert db.query(Archive).count() == 0


def test_browse_search_and_counts(archive_service, db, seed):
    add_category(db)
    add_category(db, category_id=8, name="Hygiene Kits")
    archive_service.archive("Category", 7, reason="Merged into Health")
    archive_service.archive("Category", 8)
    archive_service.archive("ReliefGood", seed.good_id, display_name="Rice (sacks)")

    assert archive_service.counts_by_type() == {"Category": 2, "ReliefGood": 1}
    assert [a.entity_name for a in archive_service.list_archives("Category")] == ["Hygiene Kits", "Medical Supplies"]
    assert [a.entity_id for a in archive_service.search_archives("health")] == [7]
    assert [a.entity_type for a in archive_service.search_archives("RELIEFGOOD")] == ["ReliefGood"]
    assert len(archive_service.search_archives("")) == 3


def test_delete_permanently(archive_service, audit, db, seed):
    add_category(db)
    archive_service.archive("Category", 7)
    envelope = db.query(Archive).one()

    ok, error = archive_service.delete_permanently(envelope.id)

    assert ok and error is None
    assert db.query(Archive).count() == 0
    entry = audit.get_logs(action="PERMANENT_DELETE")[0]
    assert json.loads(entry.old_values) == {
        "entity_type": "Category", "entity_id": 7, "entity_name": "Medical Supplies"
    }

    ok, error = archive_service.delete_permanently(envelope.id)
    assert error.code == ErrorCode.NOT_FOUND


def test_registry_and_display_names(db, seed):
    assert set(ARCHIVE_REGISTRY) == {"Category", "ReliefGood", "Disaster", "Shelter", "Stock", "BarangayBudget"}
    assert ARCHIVE_REGISTRY["BarangayBudget"].children[0].table.name == "barangay_budget_item"

    evacuee = db.get(Evacuee, seed.evacuee_id)
    assert derive_display_name(evacuee, "fallback") == "Maria Santos"
    assert derive_display_name(db.get(Shelter, seed.shelter_id), "fallback") == "Barangay Hall"
    assert derive_display_name(object(), "Thing #3") == "Thing #3"
