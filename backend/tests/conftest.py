import os
from datetime import timedelta

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from marketplace.database import SessionLocal, engine, get_db
from marketplace.main import app
from marketplace.models import Base, User, UserRole
from marketplace.repositories import Repositories
from marketplace.schemas.requirement import RequirementCreate
from marketplace.services.clock import utcnow
from marketplace.services.principal import Principal
from marketplace.services.requirements import create_requirement


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def repos(db) -> Repositories:
    return Repositories.from_session(db)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def factory(role: str = UserRole.EXPORTER, age_days: float = 0, **fields) -> Principal:
        counter["n"] += 1
        user = User(
            email=fields.pop("email", f"{role}{counter['n']}@example.com"),
            role=role,
            company_name=fields.pop("company_name", f"{role.title()} Co {counter['n']}"),
            created_at=utcnow() - timedelta(days=age_days),
            **fields,
        )
        db.add(user)
        db.commit()
        return Principal(id=user.id, role=user.role)

    return factory


@pytest.fixture
def importer(make_user) -> Principal:
    return make_user(UserRole.IMPORTER)


@pytest.fixture
def exporter(make_user) -> Principal:
    return make_user(UserRole.EXPORTER)


@pytest.fixture
def make_requirement(repos):
    def factory(importer: Principal, **fields):
        now = utcnow()
        payload = RequirementCreate(**{
            "title": "Organic basmati rice",
            "category": "agriculture",
            "quantity": 100,
            "unit": "tons",
            "target_price": 4.0,
            "currency": "USD",
            "delivery_location": "Rotterdam",
            "bid_deadline": now + timedelta(days=7),
            "delivery_deadline": now + timedelta(days=60),
            **fields,
        })
        requirement = create_requirement(repos, importer, payload)
        repos.db.commit()
        return requirement

    return factory


@pytest.fixture
def auth():
    def headers(principal: Principal) -> dict:
        return {"X-User-Id": principal.id, "X-User-Role": principal.role}

    return headers
