from __future__ import annotations

from decimal import Decimal

from reliefops.core.errors import ErrorCategory, ErrorCode
from reliefops.models import Archive, BarangayBudget, BarangayBudgetItem


def make_budget(budget_service, total="5000", name="Lahug", year=2025, status="Draft"):
    budget, error = budget_service.create_budget(name, year, Decimal(total), status=status)
    assert error is None
    return budget


def test_expenditure_over_available_is_rejected(budget_service, db, seed):
    budget = make_budget(budget_service)
    _, error = budget_service.add_expenditure_item(budget.id, "Logistics", "Trucks", Decimal("4000"))
    assert error is None

    item, error = budget_service.add_expenditure_item(budget.id, "Logistics", "Fuel", Decimal("1500"))

    assert item is None
    assert error.code == ErrorCode.INSUFFICIENT_BUDGET
    assert error.category == ErrorCategory.BUSINESS_RULE
    assert error.details["available"] == Decimal("1000")
    assert error.details["required"] == Decimal("1500")
    assert db.query(BarangayBudgetItem).filter_by(budget_id=budget.id).count() == 1


def test_item_sum_never_exceeds_total(budget_service, db, seed):
    budget = make_budget(budget_service, total="1000")
    for amount in ["300", "500", "250", "200", "0.01", "1"]:
        budget_service.add_expenditure_item(budget.id, "Relief", f"Purchase {amount}", Decimal(amount))
        spent = sum(i.amount for i in db.query(BarangayBudgetItem).filter_by(budget_id=budget.id))
        assert spent <= Decimal("1000")

    balance, _ = budget_service.get_balance(budget.id)
    assert balance == Decimal("0.00")


def test_closed_budget_rejects_expenditure(budget_service, seed):
    budget = make_budget(budget_service, status="Closed")
    _, error = budget_service.add_expenditure_item(budget.id, "Relief", "Water", Decimal("10"))
    assert error.code == ErrorCode.BUDGET_NOT_ACTIVE


def test_expenditure_on_missing_budget(budget_service, seed):
    _, error = budget_service.add_expenditure_item(9999, "Relief", "Water", Decimal("10"))
    assert error.code == ErrorCode.NOT_FOUND


def test_expenditure_requires_category_and_description(budget_service, seed):
    budget = make_budget(budget_service)
    _, error = budget_service.add_expenditure_item(budget.id, " ", "Water", Decimal("10"))
    assert error.code == ErrorCode.VALIDATION
    _, error = budget_service.add_expenditure_item(budget.id, "Relief", "Water", Decimal("-1"))
    assert error.code == ErrorCode.VALIDATION


def test_duplicate_budget_is_case_insensitive(budget_service, seed):
    make_budget(budget_service, name="Lahug", year=2025)
    budget, error = budget_service.create_budget("LAHUG", 2025, Decimal("100"))
    assert budget is None
    assert error.code == ErrorCode.DUPLICATE
    assert error.category == ErrorCategory.CONSTRAINT

    other, error = budget_service.create_budget("Lahug", 2026, Decimal("100"))
    assert error is None


def test_create_budget_validation(budget_service, seed):
    _, error = budget_service.create_budget("Lahug", 1999, Decimal("100"))
    assert error.code == ErrorCode.VALIDATION
    _, error = budget_service.create_budget("Lahug", 2025, Decimal("-5"))
    assert error.code == ErrorCode.VALIDATION
    _, error = budget_service.create_budget("", 2025, Decimal("5"))
    assert error.code == ErrorCode.VALIDATION


def test_update_cannot_drop_below_committed_spend(budget_service, db, seed):
    budget = make_budget(budget_service, total="5000")
    budget_service.add_expenditure_item(budget.id, "Relief", "Rice", Decimal("3000"))

    _, error = budget_service.update_budget(budget.id, total_amount=Decimal("2999"))
    assert error.code == ErrorCode.INSUFFICIENT_BUDGET
    assert db.get(BarangayBudget, budget.id).total_amount == Decimal("5000.00")

    updated, error = budget_service.update_budget(budget.id, total_amount=Decimal("3000"), status="Approved")
    assert error is None
    assert updated.status == "Approved"
    assert budget_service.get_balance(budget.id)[0] == Decimal("0.00")


def test_update_item_excludes_its_own_amount(budget_service, seed):
    budget = make_budget(budget_service, total="1000")
    item, _ = budget_service.add_expenditure_item(budget.id, "Relief", "Rice", Decimal("800"))

    updated, error = budget_service.update_expenditure_item(item.id, amount=Decimal("1000"))
    assert error is None
    assert updated.amount == Decimal("1000.00")

    _, error = budget_service.update_expenditure_item(item.id, amount=Decimal("1000.01"))
    assert error.code == ErrorCode.INSUFFICIENT_BUDGET


def test_delete_item_restores_balance(budget_service, db, seed):
    budget = make_budget(budget_service, total="1000")
    item, _ = budget_service.add_expenditure_item(budget.id, "Relief", "Rice", Decimal("400"))
    assert budget_service.get_balance(budget.id)[0] == Decimal("600.00")

    ok, error = budget_service.delete_expenditure_item(item.id)

    assert ok and error is None
    assert db.get(BarangayBudgetItem, item.id) is None
    assert budget_service.get_balance(budget.id)[0] == Decimal("1000.00")


def test_balance_is_cached_until_a_ledger_mutation(budget_service, cache, db, seed):
    budget = make_budget(budget_service, total="1000")
    assert budget_service.get_balance(budget.id)[0] == Decimal("1000.00")
    assert budget.id in cache

    # A change made behind the ledger's back is not seen while cached
    db.add(BarangayBudgetItem(budget_id=budget.id, category="X", description="manual", amount=Decimal("100")))
    db.commit()
    assert budget_service.get_balance(budget.id)[0] == Decimal("1000.00")

    budget_service.add_expenditure_item(budget.id, "Relief", "Rice", Decimal("200"))
    assert budget.id not in cache
    assert budget_service.get_balance(budget.id)[0] == Decimal("700.00")


def test_active_budgets_and_ordering(budget_service, seed):
    make_budget(budget_service, name="Lahug", year=2024)
    make_budget(budget_service, name="Apas", year=2025)
    make_budget(budget_service, name="Busay", year=2025, status="Closed")

    listed = [(b.barangay_name, b.year) for b in budget_service.list_budgets()]
    assert listed == [("Apas", 2025), ("Busay", 2025), ("Lahug", 2024)]
    assert {b.barangay_name for b in budget_service.active_budgets()} == {"Apas", "Lahug"}


def test_delete_budget_archives_items_and_restore_returns_them(budget_service, archive_service, db, seed):
    budget = make_budget(budget_service, total="5000")
    first, _ = budget_service.add_expenditure_item(budget.id, "Relief", "Rice", Decimal("1200.50"))
    second, _ = budget_service.add_expenditure_item(budget.id, "Logistics", "Fuel", Decimal("300"))
    budget_id, item_ids = budget.id, {first.id, second.id}

    ok, error = budget_service.delete_budget(budget_id)

    assert ok and error is None
    assert db.get(BarangayBudget, budget_id) is None
    assert db.query(BarangayBudgetItem).count() == 0
    envelope = db.query(Archive).filter_by(entity_type="BarangayBudget", entity_id=budget_id).one()
    assert envelope.entity_name == "Lahug (2025)"
    assert "2 budget items" in envelope.archive_reason

    ok, error = archive_service.restore(envelope.id)

    assert ok and error is None
    restored = db.get(BarangayBudget, budget_id)
    assert restored.barangay_name == "Lahug"
    assert restored.total_amount == Decimal("5000.00")
    assert {i.id for i in restored.items} == item_ids
    assert budget_service.get_balance(budget_id)[0] == Decimal("3499.50")
    assert db.get(Archive, envelope.id) is None


def test_archiving_budget_directly_drops_cached_balance(budget_service, archive_service, cache, db, seed):
    budget = make_budget(budget_service, total="5000")
    budget_service.add_expenditure_item(budget.id, "Relief", "Rice", Decimal("1000"))
    budget_id = budget.id
    assert budget_service.get_balance(budget_id)[0] == Decimal("4000.00")

    ok, error = archive_service.archive("BarangayBudget", budget_id)

    assert ok and error is None
    assert budget_id not in cache
    balance, error = budget_service.get_balance(budget_id)
    assert balance is None
    assert error.code == ErrorCode.NOT_FOUND


def test_restore_and_permanent_delete_drop_cached_balance(budget_service, archive_service, cache, db, seed):
    budget = make_budget(budget_service, total="5000")
    budget_id = budget.id
    archive_service.archive("BarangayBudget", budget_id)
    envelope = db.query(Archive).filter_by(entity_type="BarangayBudget", entity_id=budget_id).one()

    cache.set(budget_id, Decimal("1.00"))
    ok, error = archive_service.restore(envelope.id)
    assert ok and error is None
    assert budget_id not in cache
    assert budget_service.get_balance(budget_id)[0] == Decimal("5000.00")

    archive_service.archive("BarangayBudget", budget_id)
    envelope = db.query(Archive).filter_by(entity_type="BarangayBudget", entity_id=budget_id).one()
    cache.set(budget_id, Decimal("1.00"))
    ok, error = archive_service.delete_permanently(envelope.id)
    assert ok and error is None
    assert budget_id not in cache


def test_budget_audit_entries(budget_service, audit, seed):
    budget = make_budget(budget_service, total="1500")
    budget_service.add_expenditure_item(budget.id, "Relief", "Rice", Decimal("1000"))

    created = audit.get_logs(action="BUDGET_CREATE")
    assert created[0].entity_id == budget.id
    assert created[0].user_name == "admin"

    spent = audit.get_logs(action="BUDGET_EXPENDITURE")
    # remaining 500 is under the low-balance threshold
    assert spent[0].severity == "Warning"
    assert spent[0].is_successful is True
