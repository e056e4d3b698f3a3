from typing import List, Optional

from app_logger import get_logger
from database import DocumentStore, now
from errors import DocumentNotFound, RequiredFieldError, ValidationError
from schemas import Role, User

logger = get_logger(__name__)

USERS = "users"
INVITABLE_ROLES = (Role.TEACHER, Role.STUDENT)


def get_user(store: DocumentStore, user_id: str) -> dict:
    user = store.get_document(USERS, user_id)
    if not user:
        raise DocumentNotFound(USERS, user_id)
    return user


def invite_user(store: DocumentStore, name: str, email: str, role: Role,
                class_assigned: Optional[str] = None) -> dict:
    if not (name or "").strip():
        raise RequiredFieldError("name")
    if not (email or "").strip():
        raise RequiredFieldError("email")
    if Role(role) not in INVITABLE_ROLES:
        raise ValidationError("Only teachers and students can be invited", "INVALID_ROLE", {"role": role})

    user = User(
        name=name,
        email=email,
        role=role,
        classAssigned=class_assigned or "Unassigned",
        schoolName="My School",
        createdAt=now(),
        status="pending",
    ).model_dump(exclude_none=True)
    saved = store.create_document(USERS, user)
    logger.info(f"Invited {role} {email} as {saved['id']}")
    return saved


def delete_user(store: DocumentStore, user_id: str) -> None:
    if not store.delete_document(USERS, user_id):
        raise DocumentNotFound(USERS, user_id)
    logger.info(f"Deleted user {user_id}")


def matches(user: dict, search: str) -> bool:
    term = (search or "").lower()
    return term in (user.get("name") or "").lower() or term in (user.get("email") or "").lower()


def list_users(store: DocumentStore, role: Role, search: str = "") -> List[dict]:
    users = store.get_documents(USERS, {"role": Role(role).value})
    return [u for u in users if matches(u, search)]


def list_students(store: DocumentStore, class_assigned: Optional[str] = None, search: str = "") -> List[dict]:
    where = {"role": Role.STUDENT.value}
    if class_assigned:
        where["classAssigned"] = class_assigned
    return [u for u in store.get_documents(USERS, where) if matches(u, search)]
