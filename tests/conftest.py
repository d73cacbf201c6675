"""
Test configuration and fixtures.

Provides:
- An application built with the testing config (in-memory SQLite, no sweeper)
- Seeded organizations, users, and memberships
- A complaint factory and bearer token helpers
"""
from datetime import datetime
from types import SimpleNamespace

import pytest

from extensions import db
from models import Complaint, Department, Organization, User, UserOrganization


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("TEST_DATABASE_URL", raising=False)
    from app import create_app

    application = create_app("testing")
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def app_ctx(app):
    """Push an app context for tests that call domain functions directly."""
    with app.app_context():
        yield app


@pytest.fixture()
def seed(app):
    """Two public organizations, one private organization, and a handful of users."""
    with app.app_context():
        city = Organization(name="City Council", slug="city-council", email="council@example.org", access_type="Public")
        water = Organization(name="Water Board", slug="water-board", email="water@example.org", access_type="Public")
        guild = Organization(name="Residents Guild", slug="residents-guild", email="guild@example.org", access_type="Private")
        db.session.add_all([city, water, guild])
        db.session.flush()

        roads = Department(org_id=city.id, name="Roads")
        alice = User(name="Alice Submitter", email="alice@example.org")
        bob = User(name="Bob Voter", email="bob@example.org")
        carol = User(name="Carol Member", email="carol@example.org")
        dave = User(name="Dave Staff", email="dave@example.org")
        db.session.add_all([roads, alice, bob, carol, dave])
        db.session.flush()

        db.session.add_all(
            [
                UserOrganization(user_id=carol.id, org_id=guild.id),
                UserOrganization(user_id=alice.id, org_id=guild.id),
                UserOrganization(user_id=dave.id, org_id=city.id),
                UserOrganization(user_id=alice.id, org_id=city.id),
            ]
        )
        db.session.commit()

        return SimpleNamespace(
            city=city.id,
            water=water.id,
            guild=guild.id,
            roads=roads.id,
            alice=alice.id,
            bob=bob.id,
            carol=carol.id,
            dave=dave.id,
        )


@pytest.fixture()
def make_complaint(app, seed):
    """Factory: persist a complaint and return its id."""

    def _make(
        org_id=None,
        user_id="default",
        status="Open",
        created_at=None,
        withdrawn_at=None,
        votes=0,
        title="Pothole on Main Street",
        description="A deep pothole near the school crossing.",
    ):
        with app.app_context():
            complaint = Complaint(
                org_id=org_id or seed.city,
                user_id=seed.alice if user_id == "default" else user_id,
                title=title,
                description=description,
                priority="Medium",
                status=status,
                is_anonymous=user_id is None,
                tracking_code=Complaint.generate_tracking_code(),
                votes=votes,
                created_at=created_at or datetime.utcnow(),
                withdrawn_at=withdrawn_at,
            )
            db.session.add(complaint)
            db.session.commit()
            return complaint.id

    return _make


@pytest.fixture()
def auth_header(app):
    from utils.tokens import create_access_token

    def _header(role, actor_id, **kwargs):
        with app.app_context():
            token = create_access_token(role, actor_id, **kwargs)
        return {"Authorization": f"Bearer {token}"}

    return _header
