from datetime import date

import pytest

from loandesk import create_app
from loandesk.config import TestingConfig
from loandesk.seed import seed_demo
from loandesk.store import MemoryStore

TODAY = date(2026, 6, 15)
PASSWORD = "demo123"


@pytest.fixture
def store():
    return seed_demo(MemoryStore(), PASSWORD, today=TODAY)


@pytest.fixture
def empty_store():
    return MemoryStore()


@pytest.fixture
def app(store):
    app = create_app(TestingConfig, store=store)
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


def login(client, email, password=PASSWORD):
    return client.post("/auth/login", json={"email": email, "password": password})


@pytest.fixture
def admin_client(app):
    client = app.test_client()
    assert login(client, "admin@loandesk.in").status_code == 200
    return client


@pytest.fixture
def north_client(app):
    client = app.test_client()
    assert login(client, "staff.north@loandesk.in").status_code == 200
    return client


@pytest.fixture
def south_client(app):
    client = app.test_client()
    assert login(client, "staff.south@loandesk.in").status_code == 200
    return client


@pytest.fixture
def unassigned_client(app):
    client = app.test_client()
    assert login(client, "staff.unassigned@loandesk.in").status_code == 200
    return client


def user_by_email(store, email):
    return next(u for u in store.users if u["email"] == email)


@pytest.fixture
def admin(store):
    return user_by_email(store, "admin@loandesk.in")


@pytest.fixture
def north_staff(store):
    return user_by_email(store, "staff.north@loandesk.in")


@pytest.fixture
def south_staff(store):
    return user_by_email(store, "staff.south@loandesk.in")
