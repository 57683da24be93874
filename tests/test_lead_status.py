from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from backend.app.core.constants import ActorKind
from backend.app.core.errors import ForbiddenError, InvalidInputError, NotFoundError
from backend.app.core.security import get_password_hash
from backend.app.core.time import ensure_utc, utc_now
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.main import app
from backend.app.models.lead import Lead
from backend.app.models.user import User
from backend.app.services import lead_status


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def make_user(db, username: str, role: str) -> User:
    user = User(username=username, hashed_password=get_password_hash("secret123"), role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_lead(db, name: str = "Lead", **fields) -> Lead:
    lead = Lead(name=name, **fields)
    db.add(lead)
    db.commit()
    db.refresh(lead)
    return lead


def test_change_status_appends_history_and_stamps_first_reached(db):
    admin = make_user(db, "admin", "admin")
    lead = make_lead(db)
    at = utc_now()

    updated = lead_status.change_status(db, lead.id, admin, "texted", "intro sent", now=at)

    assert updated.status == "texted"
    assert ensure_utc(updated.texted_at) == at
    history = lead_status.list_history(db, lead.id)
    assert len(history) == 1
    entry = history[0]
    assert (entry.old_status, entry.new_status, entry.reason) == ("new", "texted", "intro sent")
    assert entry.user_id == admin.id
    assert entry.actor_kind == ActorKind.HUMAN.value


def test_first_reached_timestamp_is_not_overwritten(db):
    admin = make_user(db, "admin", "admin")
    lead = make_lead(db)
    first = utc_now() - timedelta(days=2)
    later = utc_now()

    lead_status.change_status(db, lead.id, admin, "texted", now=first)
    lead_status.change_status(db, lead.id, admin, "replied", now=first + timedelta(hours=1))
    updated = lead_status.change_status(db, lead.id, admin, "texted", now=later)

    assert ensure_utc(updated.texted_at) == first
    assert updated.status == "texted"
    assert len(lead_status.list_history(db, lead.id)) == 3


def test_projection_matches_latest_history_entry(db):
    admin = make_user(db, "admin", "admin")
    lead = make_lead(db)
    base = utc_now()
    for offset, status in enumerate(["requested", "texted", "first_followup", "second_followup"]):
        lead_status.change_status(db, lead.id, admin, status, now=base + timedelta(minutes=offset))

    db.refresh(lead)
    assert lead.status == "second_followup"
    assert lead_status.recompute_status(db, lead.id) == lead.status
    history = lead_status.list_history(db, lead.id)
    assert [h.new_status for h in history] == ["requested", "texted", "first_followup", "second_followup"]
    # Chain: each entry starts where the previous one ended
    for previous, current in zip(history, history[1:]):
        assert current.old_status == previous.new_status


def test_same_status_transition_is_recorded(db):
    admin = make_user(db, "admin", "admin")
    lead = make_lead(db)
    lead_status.change_status(db, lead.id, admin, "new", "touch")
    history = lead_status.list_history(db, lead.id)
    assert len(history) == 1
    assert history[0].old_status == history[0].new_status == "new"


def test_unknown_status_rejected_before_lookup(db):
    admin = make_user(db, "admin", "admin")
    with pytest.raises(InvalidInputError):
        lead_status.change_status(db, 999, admin, "won")


def test_missing_lead_is_not_found(db):
    admin = make_user(db, "admin", "admin")
    with pytest.raises(NotFoundError):
        lead_status.change_status(db, 999, admin, "texted")


def test_lead_gen_cannot_change_assigned_lead_status(db):
    leadgen = make_user(db, "leadgen1", "lead_gen")
    outreach = make_user(db, "outreach1", "outreach")
    lead = make_lead(db, assigned_to_id=outreach.id)

    with pytest.raises(ForbiddenError) as exc_info:
        lead_status.change_status(db, lead.id, leadgen, "texted")
    assert exc_info.value.detail == "Cannot change status of assigned leads"
    assert lead_status.list_history(db, lead.id) == []


def test_outreach_changes_only_own_leads(db):
    outreach = make_user(db, "outreach1", "outreach")
    other = make_user(db, "outreach2", "outreach")
    own = make_lead(db, "own", assigned_to_id=outreach.id)
    theirs = make_lead(db, "theirs", assigned_to_id=other.id)
    unassigned = make_lead(db, "unassigned")

    assert lead_status.change_status(db, own.id, outreach, "texted").status == "texted"
    for lead in (theirs, unassigned):
        with pytest.raises(ForbiddenError) as exc_info:
            lead_status.change_status(db, lead.id, outreach, "texted")
        assert exc_info.value.detail == "Can only change status of your own leads"


def test_system_actor_kind_recorded(db):
    admin = make_user(db, "admin", "admin")
    lead = make_lead(db, status="second_followup")
    lead_status.change_status(db, lead.id, admin, "junk", "auto", actor_kind=ActorKind.SYSTEM)
    assert lead_status.list_history(db, lead.id)[0].actor_kind == "system"


def create_user(username: str, role: str, password: str = "secret123") -> int:
    db = SessionLocal()
    try:
        user = User(username=username, hashed_password=get_password_hash(password), role=role)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user.id
    finally:
        db.close()


def login(client: TestClient, username: str, password: str = "secret123") -> dict:
    resp = client.post("/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def test_status_endpoint_flow():
    client = TestClient(app)
    create_user("admin", "admin")
    create_user("outreach1", "outreach")
    admin = login(client, "admin")
    outreach = login(client, "outreach1")

    lead_id = client.post("/leads", json={"name": "Flow"}, headers=admin).json()["id"]
    resp = client.post(f"/leads/{lead_id}/status", json={"new_status": "texted"}, headers=outreach)
    assert resp.status_code == 403

    client.post(f"/leads/{lead_id}/claim", headers=outreach)
    resp = client.post(f"/leads/{lead_id}/status", json={"new_status": "texted", "reason": "dm"}, headers=outreach)
    assert resp.status_code == 200
    assert resp.json()["status"] == "texted"
    assert resp.json()["last_status_updater"]["username"] == "outreach1"

    resp = client.post(f"/leads/{lead_id}/status", json={"new_status": "won"}, headers=outreach)
    assert resp.status_code == 422

    history = client.get(f"/leads/{lead_id}/history", headers=outreach).json()
    assert [h["reason"] for h in history] == ["Lead claimed", "dm"]
