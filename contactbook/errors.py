"""
Error kinds raised by the contact book handlers.

Client-facing errors carry their HTTP status and know how to render
themselves as a JSON payload; the FastAPI app maps them in one place.
"""

from typing import Any, Dict, Optional


class ContactBookError(Exception):
    """Base class for every error raised by this package"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


class ConfigurationError(ContactBookError):
    """A required environment value is missing"""

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message}


class RemoteStoreError(ContactBookError):
    """The remote file store answered with an unexpected status"""

    def __init__(self, operation: str, status_code: Optional[int] = None, body: str = ""):
        self.operation = operation
        self.remote_status = status_code
        self.body = body
        status = status_code if status_code is not None else "no response"
        super().__init__(f"GitHub {operation} failed: {status} {body}".rstrip())

    @property
    def is_conflict(self) -> bool:
        # GitHub answers 409 when the supplied sha no longer matches the file.
        return self.remote_status == 409


class ValidationError(ContactBookError):
    """Submitted contact field has the wrong shape"""

    status_code = 400

    def __init__(self, message: str, field: str):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "field": self.field}


class DuplicateError(ContactBookError):
    status_code = 400


class NotFoundError(ContactBookError):
    """Nothing to export"""

    status_code = 404

    def __init__(self, message: str, suggestion: str):
        super().__init__(message)
        self.suggestion = suggestion

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message, "suggestion": self.suggestion}


class MalformedDataError(ContactBookError):
    """Stored registry content could not be decoded into a registry"""

    def __init__(self, message: str, invalid_json: bool = False):
        super().__init__(message)
        self.invalid_json = invalid_json
