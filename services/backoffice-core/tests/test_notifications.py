"""
Tests for audit history and staff notifications
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from datetime import datetime, timedelta

from backoffice.core.actor import Actor
from backoffice.core.database import Base
from backoffice.core.errors import NotFound, ValidationError
from backoffice.models.lead import Lead, LeadStage, NoteType
from backoffice.models.staff import Staff, StaffRole, Dealership
from backoffice.services import audit_service, notification_service, lead_service


@pytest.fixture
def db_session():
    """Create test database session"""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def team(db_session):
    supervisor = Staff(name="Sam", role=StaffRole.SUPERVISOR)
    db_session.add(supervisor)
    db_session.flush()
    alice = Staff(name="Alice", role=StaffRole.BROKER, supervisor_id=supervisor.id)
    bob = Staff(name="Bob", role=StaffRole.BROKER, supervisor_id=supervisor.id)
    carol = Staff(name="Carol", role=StaffRole.BROKER)
    admin = Staff(name="Ana", role=StaffRole.ADMIN)
    dealership = Dealership(name="Norte Motors")
    db_session.add_all([alice, bob, carol, admin, dealership])
    db_session.commit()
    return {
        "supervisor": supervisor,
        "alice": alice,
        "bob": bob,
        "carol": carol,
        "admin": admin,
        "dealership": dealership,
    }


def add_lead(db, owner, dealership, name, stage=LeadStage.NUEVO, last_activity=None):
    lead = Lead(
        name=name,
        phone="+15550003333",
        stage=stage,
        owner_id=owner.id,
        owner_name=owner.name,
        dealership_id=dealership.id,
        dealership_name=dealership.name,
        last_activity=last_activity or datetime.utcnow()
    )
    db.add(lead)
    db.commit()
    return lead


@pytest.mark.parametrize("new_owner, old_owner, actor, expected", [
    ("b", "a", "a", ["b"]),
    ("b", "a", "c", ["b", "a"]),
    ("b", "a", "b", ["a"]),
    ("a", "a", "c", ["a"]),
    ("b", None, "c", ["b"]),
    ("a", "a", "a", []),
])
def test_reassignment_recipients(new_owner, old_owner, actor, expected):
    assert notification_service.reassignment_recipients(new_owner, old_owner, actor) == expected


def test_history_is_append_only_and_newest_first(db_session, team):
    lead = add_lead(db_session, team["alice"], team["dealership"], "Marta")
    base = datetime(2026, 3, 1, 9, 0)

    audit_service.record(db_session, lead.id, "First", "Alice", NoteType.SYSTEM, date=base)
    audit_service.record(db_session, lead.id, "Second", "Bob", NoteType.MANUAL, date=base + timedelta(minutes=1))
    audit_service.record(db_session, lead.id, "Second", "Bob", NoteType.MANUAL, date=base + timedelta(minutes=2))

    history = audit_service.history(db_session, lead.id)
    assert [entry.content for entry in history] == ["Second", "Second", "First"]


def test_manual_note_touches_last_activity(db_session, team):
    old = datetime.utcnow() - timedelta(days=3)
    lead = add_lead(db_session, team["alice"], team["dealership"], "Marta", last_activity=old)

    note = audit_service.add_manual_note(db_session, lead.id, "  Wants a test drive  ", Actor.from_staff(team["alice"]))

    assert note.content == "Wants a test drive"
    assert note.type == NoteType.MANUAL
    assert db_session.get(Lead, lead.id).last_activity > old

    with pytest.raises(ValidationError):
        audit_service.add_manual_note(db_session, lead.id, "   ", Actor.from_staff(team["alice"]))
    with pytest.raises(NotFound):
        audit_service.add_manual_note(db_session, "missing", "Hello", Actor.from_staff(team["alice"]))


def test_notification_feed_and_read_flags(db_session, team):
    alice = team["alice"]
    lead = add_lead(db_session, alice, team["dealership"], "Marta")
    first = notification_service.notify(db_session, alice.id, lead, "One", "Sam")
    notification_service.notify(db_session, alice.id, None, "Two", "Sam")
    notification_service.notify(db_session, team["bob"].id, lead, "Other", "Sam")

    assert len(notification_service.list_for_user(db_session, alice.id)) == 2
    assert first.lead_name == "Marta"

    notification_service.mark_read(db_session, first.id, alice.id)
    unread = notification_service.list_for_user(db_session, alice.id, unread_only=True)
    assert [n.content for n in unread] == ["Two"]

    with pytest.raises(NotFound):
        notification_service.mark_read(db_session, first.id, team["bob"].id)

    assert notification_service.mark_all_read(db_session, alice.id) == 1
    assert notification_service.list_for_user(db_session, alice.id, unread_only=True) == []


def test_visible_leads_by_role(db_session, team):
    dealership = team["dealership"]
    add_lead(db_session, team["alice"], dealership, "A1")
    add_lead(db_session, team["bob"], dealership, "B1")
    add_lead(db_session, team["carol"], dealership, "C1")
    add_lead(db_session, team["supervisor"], dealership, "S1")

    def names(actor_key):
        return sorted(lead.name for lead in lead_service.visible_leads(db_session, Actor.from_staff(team[actor_key])))

    assert names("admin") == ["A1", "B1", "C1", "S1"]
    assert names("supervisor") == ["A1", "B1", "S1"]
    assert names("alice") == ["A1"]


def test_stale_leads_grouped_and_reminded_once_per_owner(db_session, team):
    dealership = team["dealership"]
    now = datetime.utcnow()
    two_days_ago = now - timedelta(days=2)
    add_lead(db_session, team["alice"], dealership, "Old 1", last_activity=two_days_ago)
    add_lead(db_session, team["alice"], dealership, "Old 2", last_activity=two_days_ago)
    add_lead(db_session, team["bob"], dealership, "Old 3", stage=LeadStage.CITADO, last_activity=two_days_ago)
    add_lead(db_session, team["bob"], dealership, "Closed", stage=LeadStage.PERDIDO, last_activity=two_days_ago)
    add_lead(db_session, team["carol"], dealership, "Fresh", last_activity=now)

    grouped = lead_service.find_stale_leads(db_session, now)
    assert {owner: len(leads) for owner, leads in grouped.items()} == {team["alice"].id: 2, team["bob"].id: 1}

    reminders = lead_service.send_stale_lead_reminders(db_session, now)
    by_owner = {n.user_id: n.content for n in reminders}
    assert len(reminders) == 2
    assert by_owner[team["alice"].id] == "You have 2 leads with no activity in the last 24 hours."
    assert by_owner[team["bob"].id] == "Lead Old 3 has had no activity in the last 24 hours."
