import logging
import os
import sys

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import DocumentStore, get_store
from identity import IdentityStore
from main import app


@pytest.fixture(scope="session", autouse=True)
def _tests_log_to_stdout():
    root = logging.getLogger()
    if not any(isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stdout
               for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        root.addHandler(handler)
    root.setLevel(os.getenv("TEST_LOG_LEVEL", "WARNING").upper())


@pytest.fixture
def store():
    return DocumentStore(mongomock.MongoClient()["portal_test"])


@pytest.fixture
def identities(store):
    return IdentityStore(store, max_attempts=3, lock_minutes=1)


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_account(store, identities, email, password="secret123", role="student", name=None,
                 class_assigned="JSS 1"):
    ident = identities.create_identity(email, password, display_name=name)
    return store.set_document("users", ident.uid, {
        "uid": ident.uid,
        "name": name or email.split("@")[0].title(),
        "email": email,
        "role": role,
        "classAssigned": class_assigned,
    })


def login_headers(client, email, password="secret123"):
    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
def admin(store, identities):
    return make_account(store, identities, "owner@school.com", role="admin", name="Ada Owner")


@pytest.fixture
def teacher(store, identities):
    return make_account(store, identities, "teacher@school.com", role="teacher", name="Tunde Teacher")


@pytest.fixture
def student(store, identities):
    return make_account(store, identities, "pupil@school.com", role="student", name="Chioma Pupil")


@pytest.fixture
def admin_headers(client, admin):
    return login_headers(client, admin["email"])


@pytest.fixture
def teacher_headers(client, teacher):
    return login_headers(client, teacher["email"])


@pytest.fixture
def student_headers(client, student):
    return login_headers(client, student["email"])
