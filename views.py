"""
Page routing by view role.

Maps the active dashboard page and the role the UI is rendered as to the
surface that should be shown, and builds the sidebar menu for each role.
"""

from typing import Dict, FrozenSet, List, NamedTuple

from schemas import Role

RESTRICTED = "restricted"
BLANK = "blank"
RESTRICTED_MESSAGE = "Access Restricted"

ALL_ROLES: FrozenSet[Role] = frozenset(Role)
STAFF: FrozenSet[Role] = frozenset({Role.ADMIN, Role.TEACHER})
ADMIN_ONLY: FrozenSet[Role] = frozenset({Role.ADMIN})

PAGE_ACCESS: Dict[str, FrozenSet[Role]] = {
    "dashboard": ALL_ROLES,
    "transactions": ADMIN_ONLY,
    "customers": STAFF,
    "my-students": STAFF,
    "staff": ADMIN_ONLY,
    "grading": STAFF,
    "attendance": STAFF,
    "config": ADMIN_ONLY,
}


class MenuItem(NamedTuple):
    id: str
    label: str


MENUS: Dict[Role, List[MenuItem]] = {
    Role.ADMIN: [
        MenuItem("dashboard", "Overview"),
        MenuItem("transactions", "Transactions"),
        MenuItem("customers", "All Students"),
        MenuItem("staff", "Manage Staff"),
    ],
    Role.TEACHER: [
        MenuItem("dashboard", "Class Overview"),
        MenuItem("my-students", "My Students"),
        MenuItem("grading", "Grading Book"),
    ],
    Role.STUDENT: [
        MenuItem("dashboard", "My Portal"),
        MenuItem("grades", "My Results"),
    ],
}


class ViewResult(NamedTuple):
    page: str
    surface: str
    allowed: bool
    message: str = ""


def can_access(page: str, role: Role) -> bool:
    allowed = PAGE_ACCESS.get(page)
    return allowed is not None and Role(role) in allowed


def resolve_view(page: str, view_role: Role) -> ViewResult:
    role = Role(view_role)
    if page not in PAGE_ACCESS:
        return ViewResult(page, BLANK, False)
    if role in PAGE_ACCESS[page]:
        return ViewResult(page, page, True)
    return ViewResult(page, RESTRICTED, False, RESTRICTED_MESSAGE)


def menu_for(role: Role) -> List[MenuItem]:
    return list(MENUS[Role(role)])
