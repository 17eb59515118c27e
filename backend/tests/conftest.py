import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from app.database import get_db
from app.main import app
from app.config import settings
from app.services.auth_service import auth_service

API = "/api/v1"
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-password-123"


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture
def tmp_data(tmp_path):
    data_path = tmp_path / "IntakeDesk"
    (data_path / "uploads").mkdir(parents=True)
    return data_path


@pytest.fixture
def test_db(tmp_data):
    db_path = tmp_data / "db.sqlite"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _set_sqlite_pragmas)
    TestSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    from app.database import init_db
    init_db(db_path)

    def override_get_db():
        db = TestSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestSession
    app.dependency_overrides.clear()
    engine.dispose()


@pytest.fixture
def fresh_auth_service():
    """Reset in-memory sessions for each test."""
    original = auth_service.__dict__.copy()
    auth_service._active_tokens = {}
    yield auth_service
    auth_service.__dict__.update(original)


@pytest.fixture
def client(tmp_data, test_db, fresh_auth_service):
    original_data_path = settings.data_path
    settings.data_path = tmp_data
    c = TestClient(app)
    yield c
    settings.data_path = original_data_path


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def pdf(name="doc.pdf", content=b"%PDF-1.4 fake pdf content"):
    return (name, content, "application/pdf")


@pytest.fixture
def admin_headers(client):
    r = client.post(f"{API}/auth/setup", json={
        "name": "Admin User",
        "email": ADMIN_EMAIL,
        "password": ADMIN_PASSWORD,
    })
    assert r.status_code == 201
    r = client.post(f"{API}/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    return auth(r.json()["token"])


@pytest.fixture
def admin_id(client, admin_headers):
    return client.get(f"{API}/auth/me", headers=admin_headers).json()["id"]


@pytest.fixture
def make_user(client, admin_headers):
    """Create a role with the given permission paths and a user holding it.

    Returns ``(user_id, headers)`` for the new user.
    """
    counter = {"n": 0}

    def _make(*permission_paths, name=None):
        counter["n"] += 1
        n = counter["n"]
        r = client.post(f"{API}/roles", json={"name": f"Role {n}"}, headers=admin_headers)
        role_id = r.json()["id"]
        if permission_paths:
            client.patch(
                f"{API}/roles/{role_id}/permissions",
                json=[{"path": p, "value": True} for p in permission_paths],
                headers=admin_headers,
            )
        email = f"user{n}@example.com"
        r = client.post(f"{API}/users", json={
            "name": name or f"User {n}",
            "email": email,
            "password": "user-password-123",
            "role_id": role_id,
        }, headers=admin_headers)
        user_id = r.json()["id"]
        r = client.post(f"{API}/auth/login", json={"email": email, "password": "user-password-123"})
        return user_id, auth(r.json()["token"])

    return _make


@pytest.fixture
def create_job(client, admin_headers, admin_id):
    """Submit the intake form as the admin and return the response JSON."""

    def _create(gmail="client@example.com", assigned_person=None, files=None, **fields):
        data = {
            "gmail": gmail,
            "service_type": "Company Formation",
            "assigned_person": assigned_person or admin_id,
            "job_details": "Incorporate a trading company",
            "client_name": "Jane Client",
            "starting_point": "Referral",
        }
        data.update(fields)
        if files is None:
            files = {"document_id": pdf("id.pdf")}
        r = client.post(f"{API}/jobs", data=data, files=files, headers=admin_headers)
        assert r.status_code == 201, r.text
        return r.json()

    return _create
