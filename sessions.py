"""
Session identity and role resolution.

A session holds what the web client used to keep in local storage: the
logged-in user's id, role and display name, plus an optional "view as"
overlay an admin sets to look at the portal through another user's eyes.
From it we derive three things:

* base role - the simulated user's role while simulating, else the real role
* view role - the role the UI is rendered as; starts at the base role and
  can only be toggled by a real admin who is not simulating anyone
* effective identity - the simulated user's id while simulating, else the
  real user id; used to scope per-user data such as results

Financial data is gated on the real role, page rendering on the view role.
"""

import secrets
from typing import Optional

from app_logger import get_logger
from database import DocumentStore, now
from errors import NotAuthenticated, UserRecordNotFound, ViewRoleLocked
from identity import IdentityStore
from schemas import Role, SessionIdentity

logger = get_logger(__name__)

SESSIONS = "session"
USERS = "users"


class SessionContext:
    def __init__(self, store: DocumentStore, token: str, identity: SessionIdentity):
        self.store = store
        self.token = token
        self.identity = identity
        if identity.viewRole is None:
            identity.viewRole = self.base_role.value

    # Resolution

    @property
    def real_role(self) -> Role:
        return Role(self.identity.userRole or Role.STUDENT)

    @property
    def is_simulating(self) -> bool:
        return bool(self.identity.simulatedId)

    @property
    def base_role(self) -> Role:
        if self.is_simulating and self.identity.simulatedRole:
            return Role(self.identity.simulatedRole)
        return self.real_role

    @property
    def view_role(self) -> Role:
        return Role(self.identity.viewRole)

    @property
    def effective_identity(self) -> Optional[str]:
        return self.identity.simulatedId or self.identity.userId

    @property
    def display_name(self) -> str:
        return self.identity.simulatedName or self.identity.userName or "User"

    @property
    def title(self) -> str:
        if self.is_simulating:
            return f"Viewing as {self.identity.simulatedRole}"
        return self.identity.userTitle or self.base_role.value

    @property
    def previewing(self) -> bool:
        return self.real_role == Role.ADMIN and self.view_role != Role.ADMIN

    @property
    def can_toggle_view(self) -> bool:
        return self.real_role == Role.ADMIN and not self.is_simulating

    @property
    def can_fetch_financials(self) -> bool:
        return self.real_role == Role.ADMIN

    # Transitions

    def set_view_role(self, role: Role) -> Role:
        if self.real_role != Role.ADMIN:
            raise ViewRoleLocked("Only an admin can switch the view role")
        if self.is_simulating:
            raise ViewRoleLocked("Exit the current simulation before switching the view role")
        self.identity.viewRole = Role(role).value
        self.save()
        logger.info(f"Session {self.token[:6]}... now viewing as {self.identity.viewRole}")
        return self.view_role

    def start_simulation(self, user: dict) -> None:
        self.identity.simulatedId = user["id"]
        self.identity.simulatedRole = Role(user.get("role") or Role.STUDENT).value
        self.identity.simulatedName = user.get("name")
        logger.info(f"User {self.identity.userId} simulating {user['id']} ({self.identity.simulatedRole})")
        self.reload()

    def exit_simulation(self) -> None:
        self.identity.simulatedId = None
        self.identity.simulatedRole = None
        self.identity.simulatedName = None
        logger.info(f"User {self.identity.userId} left simulation")
        self.reload()

    def reload(self) -> None:
        # Same as a fresh page load: the view role is re-derived from the base role
        self.identity.viewRole = self.base_role.value
        self.save()

    # Lifecycle

    def save(self) -> None:
        self.store.set_document(SESSIONS, self.token, {**self.identity.model_dump(), "updatedAt": now()})

    def clear(self) -> None:
        self.store.delete_document(SESSIONS, self.token)
        logger.info(f"Session for {self.identity.userId} cleared")

    def to_public(self) -> dict:
        return {
            "userId": self.identity.userId,
            "realRole": self.real_role.value,
            "baseRole": self.base_role.value,
            "viewRole": self.view_role.value,
            "effectiveIdentity": self.effective_identity,
            "displayName": self.display_name,
            "title": self.title,
            "simulating": self.is_simulating,
            "previewing": self.previewing,
            "canToggleView": self.can_toggle_view,
        }


def open_session(store: DocumentStore, user_id: str, user: dict) -> SessionContext:
    role = user.get("role") or Role.STUDENT.value
    identity = SessionIdentity(
        userId=user_id,
        userRole=role,
        userName=user.get("name") or "User",
        userTitle=user.get("title") or role,
    )
    ctx = SessionContext(store, secrets.token_urlsafe(32), identity)
    ctx.save()
    logger.info(f"Opened session for {user_id} as {ctx.real_role.value}")
    return ctx


def load_session(store: DocumentStore, token: Optional[str]) -> SessionContext:
    if not token:
        raise NotAuthenticated()
    doc = store.get_document(SESSIONS, token)
    if not doc:
        raise NotAuthenticated("Invalid token")
    fields = {k: doc.get(k) for k in SessionIdentity.model_fields}
    return SessionContext(store, token, SessionIdentity(**fields))


def login(store: DocumentStore, identities: IdentityStore, email: str, password: str) -> SessionContext:
    ident = identities.sign_in(email, password)
    user = store.get_document(USERS, ident.uid)
    if not user:
        raise UserRecordNotFound(ident.uid)
    return open_session(store, ident.uid, user)
