"""
Exception classes for the school portal.

Every error carries a user-facing message, a stable error code and an HTTP
status so the API layer can translate it without knowing the domain.
"""

from typing import Any, Dict, Optional

from app_logger import get_logger

logger = get_logger(__name__)


class PortalError(Exception):
    """Base exception for all portal errors"""

    status_code: int = 400
    default_code: str = "PORTAL_ERROR"

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

        logger.error(f"Exception raised: {self.__class__.__name__} - {message}",
                     extra={"error_code": self.error_code, "details": self.details})


# ==============================================================================
# Validation
# ==============================================================================

class ValidationError(PortalError):
    """A required field is missing or a value is unusable"""
    default_code = "VALIDATION_ERROR"


class RequiredFieldError(ValidationError):
    def __init__(self, field_name: str, message: Optional[str] = None):
        super().__init__(message or f"Required field missing: {field_name}",
                         "REQUIRED_FIELD_MISSING", {"field": field_name})


class InvalidLicenseCode(ValidationError):
    def __init__(self):
        super().__init__("Invalid License Code.", "INVALID_LICENSE_CODE")


class ViewRoleLocked(ValidationError):
    """Raised when the view role is changed outside of free admin preview"""

    def __init__(self, reason: str):
        super().__init__(reason, "VIEW_ROLE_LOCKED")


# ==============================================================================
# Authentication
# ==============================================================================

class AuthenticationError(PortalError):
    status_code = 401
    default_code = "AUTH_ERROR"


class NotAuthenticated(AuthenticationError):
    def __init__(self, reason: str = "Missing Authorization header"):
        super().__init__(reason, "NOT_AUTHENTICATED")


class InvalidCredential(AuthenticationError):
    def __init__(self):
        super().__init__("Invalid email or password.", "INVALID_CREDENTIAL")


class TooManyRequests(AuthenticationError):
    status_code = 429

    def __init__(self, retry_after_seconds: int = 0):
        super().__init__("Too many failed attempts. Please try again later.", "TOO_MANY_REQUESTS",
                         {"retry_after": retry_after_seconds})


class NetworkFailure(AuthenticationError):
    status_code = 503

    def __init__(self):
        super().__init__("Failed to log in. Please check your connection.", "NETWORK_FAILURE")


class EmailInUse(AuthenticationError):
    status_code = 409

    def __init__(self, email: str):
        super().__init__("Account already exists. Please Login.", "EMAIL_IN_USE", {"email": email})


# ==============================================================================
# Authorization
# ==============================================================================

class AccessRestricted(PortalError):
    status_code = 403

    def __init__(self, page: str, role: str):
        super().__init__("Access Restricted", "ACCESS_RESTRICTED", {"page": page, "role": role})


# ==============================================================================
# Not found
# ==============================================================================

class NotFoundError(PortalError):
    status_code = 404
    default_code = "NOT_FOUND"


class InviteNotFound(NotFoundError):
    def __init__(self, email: str):
        super().__init__("This email has not been registered by the school admin yet.",
                         "INVITE_NOT_FOUND", {"email": email})


class UserRecordNotFound(NotFoundError):
    def __init__(self, uid: str):
        super().__init__("User record not found in database.", "USER_RECORD_NOT_FOUND", {"uid": uid})


class DocumentNotFound(NotFoundError):
    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"Document not found: {collection}/{doc_id}", "DOCUMENT_NOT_FOUND",
                         {"collection": collection, "id": doc_id})


# ==============================================================================
# Conflicts
# ==============================================================================

class DocumentConflict(PortalError):
    """A write collided with a unique index"""

    status_code = 409

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"Document conflicts with an existing one: {collection}/{doc_id}",
                         "DOCUMENT_CONFLICT", {"collection": collection, "id": doc_id})


# ==============================================================================
# Remote store
# ==============================================================================

class StoreUnavailable(PortalError):
    """A read or write against the document store failed"""

    status_code = 503

    def __init__(self, operation: str, reason: str):
        super().__init__(f"Document store {operation} failed", "STORE_UNAVAILABLE",
                         {"operation": operation, "reason": reason})
