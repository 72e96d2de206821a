from typing import Any


class APIError(Exception):
    """Base exception for all API errors."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        return {"detail": str(self)}


class ValidationError(APIError):
    """Raised for semantically invalid request parameters - maps to HTTP 422."""

    status_code = 422


class ResourceNotFoundError(APIError):
    """Raised when a required resource is not found - maps to HTTP 404."""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: Any, *, message: str | None = None):
        super().__init__(message or f"{resource_type} {resource_id!r} not found")
        self.resource_type = resource_type
        self.resource_id = resource_id

    def to_dict(self) -> dict[str, Any]:
        return {"detail": str(self), "resource_type": self.resource_type, "resource_id": str(self.resource_id)}


class IndexNotReadyError(APIError):
    """Raised when a channel index is requested before its first build completed - maps to HTTP 503."""

    status_code = 503

    def __init__(self, channel_id: str):
        super().__init__(f"Index for channel {channel_id!r} is still being built")
        self.channel_id = channel_id


class ResolutionError(Exception):
    """Raised by resolvers when a referenced channel/role/user/emoji cannot be looked up.

    Renderers recover from it locally; it never reaches the HTTP layer.
    """

    def __init__(self, kind: str, ref_id: str, reason: str | None = None):
        message = f"Could not resolve {kind} {ref_id!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.kind = kind
        self.ref_id = ref_id
