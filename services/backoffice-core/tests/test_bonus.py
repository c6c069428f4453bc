"""
Tests for the tiered bonus calculator
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from datetime import datetime, timedelta

from backoffice.core.database import Base
from backoffice.models.lead import Lead, LeadStage
from backoffice.models.staff import Staff, StaffRole, Dealership
from backoffice.services.bonus_service import (
    BONUS_TIERS,
    bonus_for_staff,
    calculate_bonus,
    validate_tiers,
)


@pytest.fixture
def db_session():
    """Create test database session"""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()


def test_zero_sales():
    info = calculate_bonus(0)
    assert info.amount == 0
    assert info.next_goal == BONUS_TIERS[0][0]
    assert info.needed_for_next == BONUS_TIERS[0][0]


def test_custom_tier_breakpoints():
    tiers = ((3, 50), (6, 120))

    assert calculate_bonus(2, tiers).next_goal == 3
    assert calculate_bonus(2, tiers).needed_for_next == 1
    assert calculate_bonus(5, tiers).next_goal == 6
    assert calculate_bonus(5, tiers).needed_for_next == 1
    assert calculate_bonus(5, tiers).amount == 50


@pytest.mark.parametrize("sales, amount, next_goal", [
    (4, 0, 5),
    (5, 100, 10),
    (12, 250, 15),
    (19, 450, 20),
    (24, 600, 25),
])
def test_product_table(sales, amount, next_goal):
    info = calculate_bonus(sales)
    assert info.amount == amount
    assert info.next_goal == next_goal
    assert info.needed_for_next == next_goal - sales


@pytest.mark.parametrize("sales", [25, 40])
def test_top_tier(sales):
    info = calculate_bonus(sales)
    assert info.amount == 750
    assert info.next_goal == 25
    assert info.needed_for_next == 0
    assert info.at_top_tier


def test_monotonic_and_idempotent():
    amounts = [calculate_bonus(sales).amount for sales in range(0, 40)]
    assert amounts == sorted(amounts)
    assert calculate_bonus(17) == calculate_bonus(17)


def test_rejects_bad_input():
    with pytest.raises(ValueError):
        calculate_bonus(-1)
    with pytest.raises(TypeError):
        calculate_bonus(2.5)
    with pytest.raises(TypeError):
        calculate_bonus(True)


def test_tier_table_validation():
    with pytest.raises(ValueError):
        validate_tiers(())
    with pytest.raises(ValueError):
        validate_tiers(((5, 100), (5, 200)))
    with pytest.raises(ValueError):
        validate_tiers(((5, 100), (10, 50)))


def test_bonus_for_staff_counts_won_leads_in_window(db_session):
    broker = Staff(name="Alice", role=StaffRole.BROKER)
    dealership = Dealership(name="Norte Motors")
    db_session.add_all([broker, dealership])
    db_session.commit()

    now = datetime(2026, 6, 30, 12, 0)

    def add(stage, days_ago):
        db_session.add(Lead(
            name="Lead",
            phone="+1555",
            stage=stage,
            owner_id=broker.id,
            owner_name=broker.name,
            dealership_id=dealership.id,
            dealership_name=dealership.name,
            created_at=now - timedelta(days=days_ago)
        ))

    for days_ago in range(6):
        add(LeadStage.GANADO, days_ago)
    add(LeadStage.GANADO, 45)
    add(LeadStage.PERDIDO, 1)
    db_session.commit()

    info = bonus_for_staff(db_session, broker.id, now=now)
    assert info.sales == 6
    assert info.amount == 100
    assert info.needed_for_next == 4
