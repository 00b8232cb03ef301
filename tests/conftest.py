import pytest
from werkzeug.security import generate_password_hash

from app.questboard import create_app
from app.questboard.auth import _login_attempts
from app.questboard.constants import CAMPAIGN_ROLE_DM, CAMPAIGN_ROLE_PLAYER, ROLE_ADMIN, ROLE_USER
from app.questboard.db import session_scope
from app.questboard.models import Base, Campaign, CampaignMember, Currency, User

PASSWORD = "pw-secret-1"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("CSRF_ENABLED", "0")
    for k in ("KEEP_TRUST_CLIENT_BREAKDOWN", "CHECK_IN_PAGE_SIZE", "LOG_LEVEL"):
        monkeypatch.delenv(k, raising=False)
    _login_attempts.clear()

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    return app


@pytest.fixture()
def seed(app):
    """Admin, a DM, a player and an outsider; one campaign with gp/sp."""
    ids = {}
    with session_scope(app) as s:
        users = {
            "admin": User(email="admin@example.com", password_hash=generate_password_hash(PASSWORD), role=ROLE_ADMIN),
            "dm": User(email="dm@example.com", password_hash=generate_password_hash(PASSWORD), role=ROLE_USER),
            "player": User(email="player@example.com", password_hash=generate_password_hash(PASSWORD), role=ROLE_USER),
            "outsider": User(email="outsider@example.com", password_hash=generate_password_hash(PASSWORD), role=ROLE_USER),
        }
        campaign = Campaign(name="Stormwatch")
        s.add_all(list(users.values()) + [campaign])
        s.flush()

        s.add_all(
            [
                CampaignMember(campaign_id=campaign.id, user_id=users["dm"].id, role=CAMPAIGN_ROLE_DM),
                CampaignMember(campaign_id=campaign.id, user_id=users["player"].id, role=CAMPAIGN_ROLE_PLAYER),
                Currency(campaign_id=campaign.id, name="Gold Pieces", abbreviation="gp"),
                Currency(campaign_id=campaign.id, name="Silver Pieces", abbreviation="sp"),
            ]
        )
        s.flush()
        ids = {name: u.id for name, u in users.items()}
        ids["campaign"] = campaign.id
    return ids


@pytest.fixture()
def client(app, seed):
    return app.test_client()


def login(client, who: str):
    r = client.post("/auth/login", json={"email": f"{who}@example.com", "password": PASSWORD})
    assert r.status_code == 200, r.json
    return r


def keep_id_for(client, campaign_id: int) -> int:
    r = client.get(f"/api/campaigns/{campaign_id}/keep")
    assert r.status_code == 200, r.json
    return r.json["keep"]["id"]
