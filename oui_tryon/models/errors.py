"""Error taxonomy shared by the resolver, the clients and the workflow."""

from enum import Enum

from pydantic import BaseModel, computed_field


class ErrorKind(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    DOWNLOAD = "download"
    ASSET_LOAD = "asset_load"
    INVALID_REFERENCE = "invalid_reference"
    NETWORK_UNREACHABLE = "network_unreachable"
    TIMEOUT = "timeout"
    SERVER_REJECTED = "server_rejected"
    MALFORMED_RESPONSE = "malformed_response"
    UNEXPECTED = "unexpected"


GENERIC_MESSAGE = "Something went wrong. Please try again."


class ClassifiedError(BaseModel):
    """A failure classified for display and retry decisions."""

    kind: ErrorKind
    message: str
    http_status: int | None = None
    detail: str | None = None

    @computed_field
    @property
    def retryable(self) -> bool:
        """Permission problems are solved by the permission action, not a retry."""
        return self.kind is not ErrorKind.PERMISSION_DENIED

    def user_message(self) -> str:
        """Short copy for the error panel."""
        if self.kind is ErrorKind.PERMISSION_DENIED:
            return self.message or "Permission needed."
        if self.kind is ErrorKind.TIMEOUT:
            return "Try-on timed out. Check your connection and try again."
        if self.kind is ErrorKind.NETWORK_UNREACHABLE:
            return "Could not reach the try-on server. Check your connection and try again."
        if self.kind is ErrorKind.SERVER_REJECTED:
            if self.detail:
                return self.detail
            return f"The server rejected the request (status {self.http_status})."
        if self.kind is ErrorKind.DOWNLOAD:
            return f"Could not download cloth image: {self.message}"
        if self.kind is ErrorKind.ASSET_LOAD:
            return f"Could not load cloth image: {self.message}"
        if self.kind is ErrorKind.INVALID_REFERENCE:
            return "Cloth image URI is missing. Try another item."
        if self.kind is ErrorKind.MALFORMED_RESPONSE:
            return "Invalid response from the server: no image."
        return self.message or GENERIC_MESSAGE

    def full_detail(self, url: str | None = None) -> str:
        """Multi-line detail for the debug report."""
        lines = [f"Type: {self.kind.value}", f"Message: {self.message}"]
        if self.http_status is not None:
            lines.append(f"Status: {self.http_status}")
        if self.detail and self.detail != self.message:
            lines.append(f"Detail: {self.detail}")
        if url:
            lines.append(f"URL: {url}")
        return "\n".join(lines)

    @classmethod
    def unexpected(cls, exc: BaseException) -> "ClassifiedError":
        return cls(
            kind=ErrorKind.UNEXPECTED,
            message=GENERIC_MESSAGE,
            detail=f"{type(exc).__name__}: {exc}",
        )


class TryOnError(Exception):
    """Base exception carrying a ClassifiedError."""

    def __init__(self, error: ClassifiedError):
        super().__init__(error.message)
        self.error = error

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind


class ResolutionError(TryOnError):
    """Garment image could not be turned into an uploadable file."""

    def __init__(self, kind: ErrorKind, message: str, detail: str | None = None):
        super().__init__(ClassifiedError(kind=kind, message=message, detail=detail))


class SubmissionError(TryOnError):
    """Try-on request failed."""
