"""
Account creation.

Two paths, picked by an explicit mode:

* owner - a school owner with a valid license code gets a new identity and
  an admin user record keyed by that identity
* invite - a teacher or student activates the user record an admin created
  for their email; the record is copied to a new document keyed by the new
  identity and the original invite is left in place
"""

from typing import Literal

from app_logger import get_logger
from database import DocumentStore, now
from errors import InvalidLicenseCode, InviteNotFound
from identity import IdentityStore
from schemas import Role, User
from settings import settings

logger = get_logger(__name__)

USERS = "users"
SignupMode = Literal["owner", "invite"]


class SignupReconciler:
    def __init__(self, store: DocumentStore, identities: IdentityStore,
                 license_code: str = settings.OWNER_LICENSE_CODE):
        self.store = store
        self.identities = identities
        self.license_code = license_code

    def signup(self, mode: SignupMode, email: str, password: str, **form) -> dict:
        if mode == "owner":
            return self.signup_owner(form.get("name", ""), form.get("school_name", ""), email, password,
                                     form.get("license_code", ""))
        return self.activate_invite(email, password)

    def signup_owner(self, name: str, school_name: str, email: str, password: str, license_code: str) -> dict:
        if license_code != self.license_code:
            raise InvalidLicenseCode()

        clean_email = email.strip()
        ident = self.identities.create_identity(clean_email, password, display_name=name)
        user = User(
            uid=ident.uid,
            name=name,
            email=clean_email,
            schoolName=school_name,
            role=Role.ADMIN,
            createdAt=now(),
        ).model_dump(exclude_none=True, exclude={"classAssigned"})
        saved = self.store.set_document(USERS, ident.uid, user)
        logger.info(f"School owner {ident.uid} signed up for {school_name}")
        return saved

    def activate_invite(self, email: str, password: str) -> dict:
        clean_email = email.strip()
        invites = self.store.get_documents(USERS, {"email": clean_email}, limit=1)
        if not invites:
            raise InviteNotFound(clean_email)

        invite = dict(invites[0])
        invite_id = invite.pop("id")
        ident = self.identities.create_identity(clean_email, password, display_name=invite.get("name"))

        # The invite document stays behind; the activated record lives under the identity id
        activated = {**invite, "uid": ident.uid, "activatedAt": now()}
        saved = self.store.set_document(USERS, ident.uid, activated)
        logger.info(f"Invite {invite_id} activated as {ident.uid} ({invite.get('role')})")
        return saved
