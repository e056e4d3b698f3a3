import hashlib
import secrets
import time
from typing import Optional

from pydantic import BaseModel

from app_logger import get_logger
from database import DocumentStore, now
from errors import DocumentConflict, EmailInUse, InvalidCredential, NetworkFailure, StoreUnavailable, TooManyRequests
from settings import settings

logger = get_logger(__name__)

IDENTITIES = "identities"
PBKDF2_ROUNDS = 120_000


class Identity(BaseModel):
    uid: str
    email: str
    display_name: Optional[str] = None


# Utility functions

def hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ROUNDS).hex()
    return f"{salt}${digest}"


def verify_password(password: str, stored: str) -> bool:
    salt, _, digest = (stored or "").partition("$")
    if not salt or not digest:
        return False
    return secrets.compare_digest(hash_password(password, salt), stored)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class IdentityStore:
    """Email/password identities with a failed-login lockout."""

    def __init__(self, store: DocumentStore, max_attempts: int = settings.LOGIN_MAX_ATTEMPTS,
                 lock_minutes: int = settings.LOGIN_LOCK_MINUTES):
        self.store = store
        self.max_attempts = max_attempts
        self.lock_seconds = lock_minutes * 60

    def _find(self, email: str) -> Optional[dict]:
        found = self.store.get_documents(IDENTITIES, {"email": normalize_email(email)}, limit=1)
        return found[0] if found else None

    def exists(self, email: str) -> bool:
        return self._find(email) is not None

    def create_identity(self, email: str, password: str, display_name: Optional[str] = None) -> Identity:
        self.store.ensure_unique(IDENTITIES, "email")
        if self.exists(email):
            raise EmailInUse(email)
        uid = secrets.token_hex(14)
        try:
            self.store.set_document(IDENTITIES, uid, {
                "email": normalize_email(email),
                "passwordHash": hash_password(password),
                "displayName": display_name,
                "failedAttempts": 0,
                "lockedUntil": None,
                "createdAt": now(),
            })
        except DocumentConflict:
            # Lost a race with a concurrent signup for the same email
            raise EmailInUse(email)
        logger.info(f"Created identity {uid} for {normalize_email(email)}")
        return Identity(uid=uid, email=normalize_email(email), display_name=display_name)

    def update_profile(self, uid: str, display_name: str) -> None:
        self.store.update_document(IDENTITIES, uid, {"displayName": display_name})

    def sign_in(self, email: str, password: str) -> Identity:
        try:
            record = self._find(email)
            if record and record.get("lockedUntil") and record["lockedUntil"] > time.time():
                raise TooManyRequests(int(record["lockedUntil"] - time.time()))
            if not record or not verify_password(password, record.get("passwordHash")):
                if record:
                    self._register_failure(record)
                raise InvalidCredential()
            if record.get("failedAttempts"):
                self.store.update_document(IDENTITIES, record["id"], {"failedAttempts": 0, "lockedUntil": None})
        except StoreUnavailable:
            raise NetworkFailure()
        return Identity(uid=record["id"], email=record["email"], display_name=record.get("displayName"))

    def _register_failure(self, record: dict) -> None:
        attempts = int(record.get("failedAttempts") or 0) + 1
        fields = {"failedAttempts": attempts}
        if attempts >= self.max_attempts:
            fields = {"failedAttempts": 0, "lockedUntil": time.time() + self.lock_seconds}
            logger.warning(f"Locking identity {record['id']} after {attempts} failed sign-ins")
        self.store.update_document(IDENTITIES, record["id"], fields)
