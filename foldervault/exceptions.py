"""Custom exception hierarchy for FolderVault."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Lookup errors
    FOLDER_NOT_FOUND = "FOLDER_NOT_FOUND"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    SHARE_TOKEN_NOT_FOUND = "SHARE_TOKEN_NOT_FOUND"

    # Hierarchy errors
    DUPLICATE_NAME = "DUPLICATE_NAME"
    BROKEN_HIERARCHY = "BROKEN_HIERARCHY"

    # Sharing errors
    INVALID_EXPIRATION = "INVALID_EXPIRATION"
    SHARE_EXPIRED = "SHARE_EXPIRED"
    NOT_ACCESSIBLE = "NOT_ACCESSIBLE"

    # Storage errors
    UPLOAD_FAILED = "UPLOAD_FAILED"
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Database errors
    DATABASE_ERROR = "DATABASE_ERROR"

    # Auth & rate limiting
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    RATE_LIMITED = "RATE_LIMITED"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class VaultException(Exception):
    """
    Base exception for all FolderVault errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            status_code: HTTP status code to return
            details: Optional additional context/details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for JSON response.

        Returns:
            Dictionary with error, message, and details fields
        """
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class NotFoundError(VaultException):
    """Referenced folder, file, or share token is absent."""

    def __init__(self, message: str, error_code: ErrorCode, details: Dict[str, Any]):
        super().__init__(message, error_code, status_code=404, details=details)


class FolderNotFoundError(NotFoundError):
    """Folder not found in the tree index."""

    def __init__(self, folder_id: str):
        super().__init__(
            f"Folder not found: {folder_id}",
            ErrorCode.FOLDER_NOT_FOUND,
            details={"folder_id": folder_id}
        )


class FileRecordNotFoundError(NotFoundError):
    """File row not found in the tree index."""

    def __init__(self, file_id: str):
        super().__init__(
            f"File not found: {file_id}",
            ErrorCode.FILE_NOT_FOUND,
            details={"file_id": file_id}
        )


class ShareTokenNotFoundError(NotFoundError):
    """No folder carries the given share token."""

    def __init__(self):
        # The token itself is a credential and never echoed back.
        super().__init__(
            "Invalid share token",
            ErrorCode.SHARE_TOKEN_NOT_FOUND,
            details={}
        )


class DuplicateNameError(VaultException):
    """A sibling with the same name already exists under the parent folder."""

    def __init__(self, name: str, parent_folder_id: str):
        super().__init__(
            f"An item named '{name}' already exists in this folder",
            ErrorCode.DUPLICATE_NAME,
            status_code=400,
            details={"name": name, "parent_folder_id": parent_folder_id}
        )


class InvalidExpirationError(VaultException):
    """Share duration is not a positive number of hours."""

    def __init__(self, hours: Any):
        super().__init__(
            "Invalid expiration time: hours must be a positive number",
            ErrorCode.INVALID_EXPIRATION,
            status_code=400,
            details={"hours": repr(hours)}
        )


class BrokenHierarchyError(VaultException):
    """Parent chain does not terminate at a valid root (index corruption)."""

    def __init__(self, folder_id: str, reason: str):
        super().__init__(
            f"Broken folder hierarchy at {folder_id}: {reason}",
            ErrorCode.BROKEN_HIERARCHY,
            status_code=500,
            details={"folder_id": folder_id, "reason": reason}
        )


class UploadError(VaultException):
    """Object write succeeded but the index write failed; the object is orphaned."""

    def __init__(self, key: str, original_error: Optional[Exception] = None):
        details = {"orphaned_key": key}
        if original_error:
            details["original_error"] = str(original_error)
        super().__init__(
            f"Upload failed after storing object: {key}",
            ErrorCode.UPLOAD_FAILED,
            status_code=500,
            details=details
        )


class StorageUnavailableError(VaultException):
    """Object-store call failed or timed out on a path where failure must propagate."""

    def __init__(self, operation: str, key: str, original_error: Optional[Exception] = None):
        details = {"operation": operation, "key": key}
        if original_error:
            details["original_error"] = str(original_error)
        super().__init__(
            f"Object storage unavailable during {operation}: {key}",
            ErrorCode.STORAGE_UNAVAILABLE,
            status_code=502,
            details=details
        )


class ShareExpiredError(VaultException):
    """Share token exists but its link has expired."""

    def __init__(self):
        super().__init__(
            "Share link has expired",
            ErrorCode.SHARE_EXPIRED,
            status_code=403,
        )


class NotAccessibleError(VaultException):
    """File is not inside the subtree granted by a share token."""

    def __init__(self, file_id: str):
        super().__init__(
            "File not accessible through this share link",
            ErrorCode.NOT_ACCESSIBLE,
            status_code=403,
            details={"file_id": file_id}
        )


class ValidationError(VaultException):
    """Validation failed for user input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )


class AuthenticationError(VaultException):
    """Request lacks valid authentication credentials."""

    def __init__(self, message: str = "Invalid or missing authentication token"):
        super().__init__(
            message,
            ErrorCode.UNAUTHORIZED,
            status_code=401,
        )


class ForbiddenError(VaultException):
    """Authenticated user does not own the requested subtree."""

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(
            message,
            ErrorCode.FORBIDDEN,
            status_code=403,
        )


class DatabaseError(VaultException):
    """Database operation failed."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        details = {}
        if original_error:
            details["original_error"] = str(original_error)

        super().__init__(
            message,
            ErrorCode.DATABASE_ERROR,
            status_code=500,
            details=details
        )
