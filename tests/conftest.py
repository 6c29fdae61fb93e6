"""Shared fixtures: an app on an in-memory database with two categories."""
import pytest
from werkzeug.security import generate_password_hash

from config import TestingConfig
from tnt_history import create_app
from tnt_history.extensions import db
from tnt_history.models import Category
from tnt_history.store import get_event_store

ADMIN_PASSWORD = "tnt-admin"


class Settings(TestingConfig):
    ADMIN_PASSWORD_HASH = generate_password_hash(ADMIN_PASSWORD)
    IDENTITY_NAME_URL = "https://identity.test/user/{name}"
    IDENTITY_PROFILE_URL = "https://identity.test/profile/{uuid}"


@pytest.fixture
def app():
    app = create_app(Settings)
    with app.app_context():
        db.session.add_all([
            Category(id="update", name="Game Update", color="E74C3C"),
            Category(id="tournament", name="Tournament", color="F1C40F"),
        ])
        db.session.commit()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(client):
    with client.session_transaction() as sess:
        sess["admin"] = True
    return client


@pytest.fixture
def store(app):
    return get_event_store()


@pytest.fixture
def sample_events(store):
    """Three dated events: two categorized, one not."""
    return [
        store.add_event(id="ev-a", title="Map rotation update", date="2019-03-01", category="update"),
        store.add_event(id="ev-b", title="Spring Cup", date="2019-03-02", category="tournament"),
        store.add_event(id="ev-c", title="Win streak record", date="2021-07-15", category=None),
    ]
