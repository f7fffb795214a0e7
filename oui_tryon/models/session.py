"""Workflow state and result models."""

import base64
import io
from datetime import datetime
from enum import Enum
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

from PIL import Image
from pydantic import BaseModel, Field, computed_field

from .garment import ClothType, mime_type_for


class WorkflowStep(str, Enum):
    CHOOSING = "choosing"
    CAPTURING = "capturing"
    PREVIEWING = "previewing"
    SUBMITTING = "submitting"
    RESULT = "result"


class CapturedPhoto(BaseModel):
    """A person photo obtained from the camera or the gallery."""

    path: Path
    mime_type: str = "image/jpeg"

    @classmethod
    def from_uri(cls, uri: str, mime_type: str | None = None) -> "CapturedPhoto":
        """Build from a local URI such as 'file:///data/.../photo.jpg'."""
        path = url2pathname(urlparse(uri).path) if uri.startswith("file://") else uri
        return cls(path=Path(path), mime_type=mime_type or mime_type_for(path))


class PreprocessToken(BaseModel):
    """Server-side cache key standing in for a re-upload of the photo."""

    value: str = Field(min_length=1)
    cloth_type: ClothType
    photo_generation: int = Field(description="Generation of the photo it was issued for")

    @property
    def preview(self) -> str:
        return f"{self.value[:12]}..."


class TryOnResult(BaseModel):
    """Composed try-on image returned inline by the service."""

    image_bytes: bytes
    mime_type: str = "image/jpeg"
    created_at: datetime = Field(default_factory=datetime.now)

    @classmethod
    def from_base64(cls, payload: str, mime_type: str = "image/jpeg") -> "TryOnResult":
        """Decode the inline payload. Raises binascii.Error on bad input."""
        return cls(image_bytes=base64.b64decode(payload, validate=True), mime_type=mime_type)

    @computed_field
    @property
    def size_bytes(self) -> int:
        return len(self.image_bytes)

    @property
    def data_url(self) -> str:
        encoded = base64.b64encode(self.image_bytes).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"

    def to_image(self) -> Image.Image:
        """Open the result with Pillow for display."""
        return Image.open(io.BytesIO(self.image_bytes))

    def save(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.image_bytes)
        return path


class RequestDetails(BaseModel):
    """What the last try-on attempt sent and how far it got."""

    url: str
    sending: str = "Preparing..."
    format: str = "multipart/form-data (no Content-Type set, boundary auto)"
    reached: bool | None = None
    response_status: int | None = None
    error: str | None = None

    def describe(self) -> str:
        reached = "-" if self.reached is None else ("Yes" if self.reached else "No")
        if self.response_status is not None:
            reached += f" ({self.response_status})"
        lines = [
            f"URL: {self.url}",
            f"Sending: {self.sending}",
            f"Reached: {reached}",
        ]
        if self.error:
            lines.append(f"Error: {self.error}")
        return "\n".join(lines)
