import os

# Base SQLite en mémoire : doit être posé AVANT l'import des modules backend
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from backend.app.api.deps import get_db  # noqa: E402
from backend.app.core.security import create_access_token, hash_password  # noqa: E402
from backend.app.db.base import Base  # noqa: E402
from backend.app.db.models.core_types import Role  # noqa: E402
from backend.app.db.models.models_v1 import User  # noqa: E402
from backend.app.db.session import SessionLocal, engine  # noqa: E402
from backend.app.main import app  # noqa: E402


@pytest.fixture(scope="function")
def db_session() -> Session:
    """
    Session DB isolée par test.

    Schéma recréé à chaque test sur une base SQLite en mémoire
    (StaticPool : une seule connexion partagée avec le TestClient).
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    def _get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


def _make_user(db: Session, username: str, role: Role) -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        password_hash=hash_password("secret123"),
        role=role,
    )
    db.add(user)
    db.commit()
    return user


def auth_headers(user: User) -> dict:
    token = create_access_token(user_id=user.id, role=user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(db_session) -> dict:
    return auth_headers(_make_user(db_session, "admin", Role.admin))


@pytest.fixture
def user_headers(db_session) -> dict:
    return auth_headers(_make_user(db_session, "reader", Role.user))


@pytest.fixture
def make(client, admin_headers):
    """Fabrique de données de référence via l'API (admin)."""

    class Factory:
        def post(self, path: str, payload: dict) -> dict:
            resp = client.post(f"/api{path}", json=payload, headers=admin_headers)
            assert resp.status_code == 201, resp.text
            return resp.json()

        def unit(self, name="Kilogram", symbol="kg"):
            return self.post("/units", {"name": name, "symbol": symbol})

        def food(self, name="Rice", unit_id=None):
            unit_id = unit_id or self.unit(name=f"unit-{name}")["id"]
            return self.post("/foods", {"name": name, "unit_of_measurement_id": unit_id})

        def provider(self, name="Provider A"):
            return self.post("/providers", {"name": name, "email": "p@example.com"})

        def center(self, name="Center A"):
            return self.post("/medical-centers", {"name": name, "address": "1 Main St", "email": "c@example.com"})

        def entry(self, center_id, provider_id, foods, food_plan_id=None, entry_date="2026-01-10"):
            return self.post(
                "/food-entries",
                {
                    "medical_center_id": center_id,
                    "provider_id": provider_id,
                    "food_plan_id": food_plan_id,
                    "entry_date": entry_date,
                    "entered_foods": [{"food_id": f, "quantity": q} for f, q in foods],
                },
            )

    return Factory()
