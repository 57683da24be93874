import pytest
from fastapi.testclient import TestClient

from backend.app.core.security import get_password_hash
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.main import app
from backend.app.models.status_history import StatusHistory
from backend.app.models.user import User


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


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


def create_lead(client: TestClient, headers: dict, payload: dict):
    return client.post("/leads", json=payload, headers=headers)


def test_admin_creates_unassigned_new_lead():
    client = TestClient(app)
    admin_id = create_user("admin", "admin")
    headers = login(client, "admin")

    resp = create_lead(client, headers, {"name": "Alex Chen"})
    assert resp.status_code == 201
    data = resp.json()
    assert data["name"] == "Alex Chen"
    assert data["status"] == "new"
    assert data["assigned_to_id"] is None
    assert data["system"] == "linkedin_one"
    assert data["created_by_id"] == admin_id
    for field in ["texted_at", "first_followup_at", "second_followup_at", "replied_at"]:
        assert data[field] is None


def test_create_lead_requires_name():
    client = TestClient(app)
    create_user("admin", "admin")
    headers = login(client, "admin")
    resp = create_lead(client, headers, {"email": "a@example.com"})
    assert resp.status_code == 422
    assert resp.json()["error"] == "invalid_input"
    assert resp.json()["detail"].startswith("name: ")
    assert create_lead(client, headers, {"name": ""}).json()["error"] == "invalid_input"


def test_unknown_status_value_is_invalid_input():
    client = TestClient(app)
    create_user("admin", "admin")
    headers = login(client, "admin")
    lead_id = create_lead(client, headers, {"name": "Target"}).json()["id"]

    resp = client.post(f"/leads/{lead_id}/status", json={"new_status": "bogus"}, headers=headers)
    assert resp.status_code == 422
    body = resp.json()
    assert body["error"] == "invalid_input"
    assert isinstance(body["detail"], str)
    assert body["detail"].startswith("new_status: ")
    assert client.get(f"/leads/{lead_id}", headers=headers).json()["status"] == "new"


def test_create_lead_accepts_blank_optional_fields():
    client = TestClient(app)
    create_user("admin", "admin")
    headers = login(client, "admin")
    resp = create_lead(client, headers, {"name": "Blank Fields", "email": "", "website": ""})
    assert resp.status_code == 201
    assert resp.json()["email"] is None
    assert resp.json()["website"] is None


def test_outreach_cannot_create_leads():
    client = TestClient(app)
    create_user("outreach1", "outreach")
    headers = login(client, "outreach1")
    resp = create_lead(client, headers, {"name": "Nope"})
    assert resp.status_code == 403
    assert resp.json()["error"] == "forbidden"


def test_lead_gen_assignment_is_stripped_admin_assignment_kept():
    client = TestClient(app)
    create_user("admin", "admin")
    create_user("leadgen1", "lead_gen")
    outreach_id = create_user("outreach1", "outreach")

    resp = create_lead(client, login(client, "leadgen1"), {"name": "From Lead Gen", "assigned_to_id": outreach_id})
    assert resp.status_code == 201
    assert resp.json()["assigned_to_id"] is None

    resp = create_lead(client, login(client, "admin"), {"name": "From Admin", "assigned_to_id": outreach_id})
    assert resp.status_code == 201
    assert resp.json()["assigned_to_id"] == outreach_id
    assert resp.json()["assigned_to"]["username"] == "outreach1"


def test_admin_assignment_to_unknown_user_is_not_found():
    client = TestClient(app)
    create_user("admin", "admin")
    resp = create_lead(client, login(client, "admin"), {"name": "Lost", "assigned_to_id": 999})
    assert resp.status_code == 404


def test_lead_gen_loses_edit_rights_once_claimed():
    client = TestClient(app)
    create_user("leadgen1", "lead_gen")
    create_user("outreach1", "outreach")
    leadgen = login(client, "leadgen1")
    outreach = login(client, "outreach1")

    lead_id = create_lead(client, leadgen, {"name": "Editable"}).json()["id"]
    resp = client.put(f"/leads/{lead_id}", json={"company": "Acme"}, headers=leadgen)
    assert resp.status_code == 200
    assert resp.json()["company"] == "Acme"

    assert client.post(f"/leads/{lead_id}/claim", headers=outreach).status_code == 200

    resp = client.put(f"/leads/{lead_id}", json={"company": "Other"}, headers=leadgen)
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Cannot edit assigned leads"


def test_outreach_edits_only_own_leads_and_cannot_reassign():
    client = TestClient(app)
    create_user("admin", "admin")
    create_user("outreach1", "outreach")
    other_id = create_user("outreach2", "outreach")
    admin = login(client, "admin")
    outreach = login(client, "outreach1")

    lead_id = create_lead(client, admin, {"name": "Someone"}).json()["id"]
    resp = client.put(f"/leads/{lead_id}", json={"notes": "hi"}, headers=outreach)
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Can only edit your own leads"

    client.post(f"/leads/{lead_id}/claim", headers=outreach)
    resp = client.put(f"/leads/{lead_id}", json={"notes": "hi", "assigned_to_id": other_id}, headers=outreach)
    assert resp.status_code == 200
    assert resp.json()["notes"] == "hi"
    assert resp.json()["assigned_to"]["username"] == "outreach1"


def test_edit_with_status_records_history_and_stamps_timestamp():
    client = TestClient(app)
    create_user("admin", "admin")
    admin = login(client, "admin")
    lead_id = create_lead(client, admin, {"name": "Status Via Edit"}).json()["id"]

    resp = client.put(f"/leads/{lead_id}", json={"status": "texted", "reason": "sent intro"}, headers=admin)
    assert resp.status_code == 200
    assert resp.json()["status"] == "texted"
    assert resp.json()["texted_at"] is not None

    history = client.get(f"/leads/{lead_id}/history", headers=admin).json()
    assert len(history) == 1
    assert history[0]["old_status"] == "new"
    assert history[0]["new_status"] == "texted"
    assert history[0]["reason"] == "sent intro"
    assert history[0]["actor_kind"] == "human"

    # Same status in an edit is not a transition
    client.put(f"/leads/{lead_id}", json={"status": "texted", "notes": "x"}, headers=admin)
    assert len(client.get(f"/leads/{lead_id}/history", headers=admin).json()) == 1


def test_only_admin_deletes_and_history_cascades():
    client = TestClient(app)
    create_user("admin", "admin")
    create_user("leadgen1", "lead_gen")
    create_user("outreach1", "outreach")
    admin = login(client, "admin")

    lead_id = create_lead(client, admin, {"name": "Doomed"}).json()["id"]
    client.post(f"/leads/{lead_id}/status", json={"new_status": "requested"}, headers=admin)

    assert client.delete(f"/leads/{lead_id}", headers=login(client, "leadgen1")).status_code == 403
    assert client.delete(f"/leads/{lead_id}", headers=login(client, "outreach1")).status_code == 403

    resp = client.delete(f"/leads/{lead_id}", headers=admin)
    assert resp.status_code == 200
    assert resp.json() == {"status": "deleted", "id": lead_id}
    assert client.get(f"/leads/{lead_id}", headers=admin).status_code == 404

    db = SessionLocal()
    try:
        assert db.query(StatusHistory).filter(StatusHistory.lead_id == lead_id).count() == 0
    finally:
        db.close()


def test_missing_lead_is_not_found():
    client = TestClient(app)
    create_user("admin", "admin")
    admin = login(client, "admin")
    assert client.get("/leads/12345", headers=admin).status_code == 404
    assert client.put("/leads/12345", json={"notes": "x"}, headers=admin).status_code == 404
    resp = client.delete("/leads/12345", headers=admin)
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


def test_search_matches_name_email_company_case_insensitive():
    client = TestClient(app)
    create_user("admin", "admin")
    admin = login(client, "admin")
    create_lead(client, admin, {"name": "Alex Chen"})
    create_lead(client, admin, {"name": "Bea", "email": "bea@chenworks.io"})
    create_lead(client, admin, {"name": "Cy", "company": "CHEN Industries"})
    create_lead(client, admin, {"name": "Dana", "company": "Other"})

    resp = client.get("/leads", params={"search": "chen"}, headers=admin)
    assert resp.status_code == 200
    names = {lead["name"] for lead in resp.json()["leads"]}
    assert names == {"Alex Chen", "Bea", "Cy"}


def test_system_filter():
    client = TestClient(app)
    create_user("admin", "admin")
    admin = login(client, "admin")
    create_lead(client, admin, {"name": "One", "system": "upwork"})
    create_lead(client, admin, {"name": "Two"})
    resp = client.get("/leads", params={"system": "upwork"}, headers=admin)
    assert [lead["name"] for lead in resp.json()["leads"]] == ["One"]
    assert create_lead(client, admin, {"name": "Bad", "system": "myspace"}).status_code == 422


def test_pagination_metadata():
    client = TestClient(app)
    create_user("admin", "admin")
    admin = login(client, "admin")
    for i in range(3):
        create_lead(client, admin, {"name": f"Lead {i}"})

    resp = client.get("/leads", params={"page": 2, "limit": 2}, headers=admin)
    body = resp.json()
    assert len(body["leads"]) == 1
    assert body["pagination"] == {"page": 2, "limit": 2, "total": 3, "total_pages": 2}
    # Newest first
    first_page = client.get("/leads", params={"page": 1, "limit": 2}, headers=admin).json()["leads"]
    assert [lead["name"] for lead in first_page] == ["Lead 2", "Lead 1"]


def test_status_filter_results_are_subset_of_all_in_same_order():
    client = TestClient(app)
    create_user("admin", "admin")
    admin = login(client, "admin")
    ids = [create_lead(client, admin, {"name": f"Lead {i}"}).json()["id"] for i in range(5)]
    for lead_id in (ids[0], ids[2], ids[4]):
        client.post(f"/leads/{lead_id}/status", json={"new_status": "texted"}, headers=admin)

    texted = client.get("/leads", params={"status": "texted", "limit": 100}, headers=admin).json()["leads"]
    everything = client.get("/leads", params={"status": "all", "limit": 100}, headers=admin).json()["leads"]

    texted_ids = [lead["id"] for lead in texted]
    all_ids = [lead["id"] for lead in everything]
    assert set(texted_ids) == {ids[0], ids[2], ids[4]}
    assert [i for i in all_ids if i in texted_ids] == texted_ids
    by_id = {lead["id"]: lead for lead in everything}
    for lead in texted:
        assert by_id[lead["id"]] == lead


def test_unknown_status_filter_rejected():
    client = TestClient(app)
    create_user("admin", "admin")
    admin = login(client, "admin")
    resp = client.get("/leads", params={"status": "bogus"}, headers=admin)
    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_input"


def test_lead_detail_includes_history_and_last_updater():
    client = TestClient(app)
    create_user("admin", "admin")
    admin = login(client, "admin")
    lead_id = create_lead(client, admin, {"name": "Detailed"}).json()["id"]
    client.post(f"/leads/{lead_id}/status", json={"new_status": "requested", "reason": "connection sent"}, headers=admin)

    resp = client.get(f"/leads/{lead_id}", headers=admin)
    assert resp.status_code == 200
    body = resp.json()
    assert [h["new_status"] for h in body["status_history"]] == ["requested"]
    assert body["last_status_updater"]["username"] == "admin"
    assert body["last_status_updated_at"] is not None
