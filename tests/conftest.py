from __future__ import annotations

from types import SimpleNamespace

import pytest
from sqlalchemy.orm import sessionmaker

from reliefops.core.database import Base, build_engine
from reliefops.core.identity import ActingUser, IdentityProvider
from reliefops.models import AppUser, Category, Disaster, Evacuee, ReliefGood, Shelter
from reliefops.services import (
    AllocationService, ArchiveService, AuditService, BalanceCache, BudgetService, StockService
)


def make_engine(path):
    engine = build_engine(f"sqlite:///{path}")
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(tmp_path / "ledger.db")
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def seed_reference_data(session):
    user = AppUser(username="admin", full_name="Relief Admin", role="Admin", is_active=True)
    disaster = Disaster(
        title="Typhoon Odette", disaster_type="Typhoon", severity="High", location="Cebu"
    )
    session.add_all([user, disaster])
    session.flush()

    shelter = Shelter(disaster_id=disaster.id, name="Barangay Hall", capacity=200, location="Cebu City")
    other_shelter = Shelter(disaster_id=disaster.id, name="School Gym", capacity=150, location="Mandaue")
    session.add_all([shelter, other_shelter])
    session.flush()

    evacuee = Evacuee(disaster_id=disaster.id, shelter_id=shelter.id, first_name="Maria", last_name="Santos")
    category = Category(name="Food", description="Food packs")
    good = ReliefGood(name="Rice", unit="sack")
    session.add_all([evacuee, category, good])
    session.commit()

    return SimpleNamespace(
        user_id=user.id,
        disaster_id=disaster.id,
        shelter_id=shelter.id,
        other_shelter_id=other_shelter.id,
        evacuee_id=evacuee.id,
        category_id=category.id,
        good_id=good.id,
    )


@pytest.fixture
def seed(db):
    return seed_reference_data(db)


@pytest.fixture
def identity(seed):
    return IdentityProvider(ActingUser(user_id=seed.user_id, username="admin", role="Admin"))


@pytest.fixture
def audit(session_factory, identity):
    return AuditService(session_factory, identity)


@pytest.fixture
def cache():
    return BalanceCache(ttl_seconds=900)


@pytest.fixture
def archive_service(db, audit, cache):
    return ArchiveService(db, audit, cache=cache)


@pytest.fixture
def budget_service(db, audit, cache, archive_service):
    return BudgetService(db, audit, cache=cache, archive=archive_service)


@pytest.fixture
def stock_service(db, audit, budget_service, archive_service):
    return StockService(db, audit, budgets=budget_service, archive=archive_service)


@pytest.fixture
def allocation_service(db, audit):
    return AllocationService(db, audit)
