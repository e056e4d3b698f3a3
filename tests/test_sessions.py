import pytest

from errors import InvalidCredential, NotAuthenticated, UserRecordNotFound, ViewRoleLocked
from finance import feed_for_session
from schemas import Role
from sessions import load_session, login, open_session
from views import resolve_view

ADMIN = {"id": "u-admin", "name": "Ada Owner", "role": "admin"}
TEACHER = {"id": "u-teacher", "name": "Tunde", "role": "teacher"}
STUDENT = {"id": "u-student", "name": "Chioma", "role": "student"}


def test_fresh_session_views_as_real_role(store):
    session = open_session(store, TEACHER["id"], TEACHER)
    assert session.real_role == Role.TEACHER
    assert session.base_role == Role.TEACHER
    assert session.view_role == Role.TEACHER
    assert session.effective_identity == "u-teacher"
    assert not session.previewing


def test_session_round_trips_through_store(store):
    session = open_session(store, ADMIN["id"], ADMIN)
    session.set_view_role(Role.TEACHER)

    loaded = load_session(store, session.token)
    assert loaded.real_role == Role.ADMIN
    assert loaded.view_role == Role.TEACHER
    assert loaded.previewing


def test_missing_or_unknown_token(store):
    with pytest.raises(NotAuthenticated):
        load_session(store, None)
    with pytest.raises(NotAuthenticated):
        load_session(store, "not-a-token")


def test_role_defaults_to_student(store):
    session = open_session(store, "u-x", {"name": "No Role"})
    assert session.real_role == Role.STUDENT


@pytest.mark.parametrize("user", [TEACHER, STUDENT])
def test_only_admin_can_toggle_view(store, user):
    session = open_session(store, user["id"], user)
    assert not session.can_toggle_view
    with pytest.raises(ViewRoleLocked):
        session.set_view_role(Role.ADMIN)
    assert session.view_role == Role(user["role"])


def test_simulation_overrides_identity(store):
    session = open_session(store, ADMIN["id"], ADMIN)
    session.start_simulation(STUDENT)

    assert session.is_simulating
    assert session.base_role == Role.STUDENT
    assert session.view_role == Role.STUDENT
    assert session.effective_identity == "u-student"
    assert session.display_name == "Chioma"
    assert session.title == "Viewing as student"
    assert session.real_role == Role.ADMIN
    with pytest.raises(ViewRoleLocked):
        session.set_view_role(Role.ADMIN)

    session.exit_simulation()
    assert session.view_role == Role.ADMIN
    assert session.effective_identity == "u-admin"


def test_reload_resets_preview(store):
    session = open_session(store, ADMIN["id"], ADMIN)
    session.set_view_role(Role.STUDENT)
    session.reload()
    assert session.view_role == Role.ADMIN


def test_preview_restricts_pages_but_keeps_financial_feed(store):
    session = open_session(store, ADMIN["id"], ADMIN)
    session.set_view_role(Role.STUDENT)

    assert not resolve_view("transactions", session.view_role).allowed
    feed = feed_for_session(session, store)
    assert feed is not None and feed.active
    feed.stop()


def test_teacher_gets_no_financial_feed(store):
    session = open_session(store, TEACHER["id"], TEACHER)
    assert feed_for_session(session, store) is None
    assert store.subscription_count() == 0


def test_clear_removes_session(store):
    session = open_session(store, STUDENT["id"], STUDENT)
    session.clear()
    with pytest.raises(NotAuthenticated):
        load_session(store, session.token)


def test_login_needs_user_record(store, identities):
    ident = identities.create_identity("orphan@school.com", "secret123")
    with pytest.raises(UserRecordNotFound):
        login(store, identities, "orphan@school.com", "secret123")

    store.set_document("users", ident.uid, {"name": "Orphan", "role": "teacher", "email": "orphan@school.com"})
    session = login(store, identities, "orphan@school.com", "secret123")
    assert session.real_role == Role.TEACHER
    assert session.display_name == "Orphan"

    with pytest.raises(InvalidCredential):
        login(store, identities, "orphan@school.com", "nope")
