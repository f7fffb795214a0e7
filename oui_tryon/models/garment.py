"""Garment reference models."""

from enum import Enum
from pathlib import Path
from typing import Annotated, Literal, Union
from urllib.parse import urlparse

from pydantic import BaseModel, Field, computed_field, field_validator


class ClothType(str, Enum):
    """Clothing category sent as the ``cloth_type`` request field."""
    UPPER = "upper"      # torso only
    LOWER = "lower"      # pants, jeans
    OVERALL = "overall"  # full suit, dress


def mime_type_for(name: str) -> str:
    """Infer an upload mime type from a file name or URL path."""
    return "image/png" if Path(name).suffix.lower() == ".png" else "image/jpeg"


class BundledAsset(BaseModel):
    """Image shipped with the app, addressed by its bundle identifier."""
    kind: Literal["bundled"] = "bundled"
    asset_id: str = Field(min_length=1, description="e.g., 'colourfull-sweatshirt.jpg'")

    @property
    def source_key(self) -> str:
        return f"bundled:{self.asset_id}"


class RemoteImage(BaseModel):
    """Image hosted remotely, addressed by a fully-qualified URL."""
    kind: Literal["remote"] = "remote"
    url: str

    @field_validator("url")
    @classmethod
    def _require_http(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"not a fully-qualified http(s) URL: {value!r}")
        return value

    @property
    def source_key(self) -> str:
        return f"remote:{self.url}"

    @property
    def extension(self) -> str:
        return "png" if mime_type_for(urlparse(self.url).path) == "image/png" else "jpg"


GarmentImage = Annotated[Union[BundledAsset, RemoteImage], Field(discriminator="kind")]


class GarmentReference(BaseModel):
    """A catalog item together with a pointer to its image."""

    garment_id: str
    name: str
    cloth_type: ClothType = ClothType.UPPER
    image: GarmentImage
    price: str | None = None

    @computed_field
    @property
    def is_remote(self) -> bool:
        return isinstance(self.image, RemoteImage)


class ResolvedGarmentResource(BaseModel):
    """A garment image materialized as a local file, ready for upload."""

    path: Path
    mime_type: str = "image/jpeg"
    source: str = Field(description="source_key of the reference it was resolved from")

    @property
    def upload_name(self) -> str:
        """File name sent in the multipart part, e.g. 'cloth.png'."""
        suffix = self.path.suffix.lstrip(".").split("?")[0] or "jpg"
        return f"cloth.{suffix}"
