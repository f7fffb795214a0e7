# Test fixtures and configuration
import io
import re
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from oui_tryon.config import ClientConfig
from oui_tryon.models import (
    BundledAsset,
    CapturedPhoto,
    ClothType,
    GarmentReference,
    RemoteImage,
    ResolvedGarmentResource,
    TryOnResult,
)


def make_image(width: int = 64, height: int = 96, color=(128, 128, 128), fmt: str = "JPEG") -> bytes:
    """Encode a solid-color image."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=color).save(buffer, format=fmt)
    return buffer.getvalue()


def multipart_fields(body: bytes) -> list[str]:
    """Field names present in a multipart/form-data body."""
    return re.findall(r'form-data; name="([^"]+)"', body.decode("latin-1"))


class FakeCamera:
    """Capture service returning queued photos; None means the user cancelled."""

    def __init__(self, photos=None, granted: bool = True, grant_on_request: bool = True):
        self.photos = list(photos or [])
        self.granted = granted
        self.grant_on_request = grant_on_request
        self.requests = 0

    async def has_permission(self) -> bool:
        return self.granted

    async def request_permission(self) -> bool:
        self.requests += 1
        self.granted = self.grant_on_request
        return self.granted

    async def capture(self):
        return self.photos.pop(0) if self.photos else None


class FakeGallery:
    def __init__(self, photos=None, granted: bool = True):
        self.photos = list(photos or [])
        self.granted = granted

    async def request_permission(self) -> bool:
        return self.granted

    async def pick_image(self):
        return self.photos.pop(0) if self.photos else None


@pytest.fixture
def config(tmp_path):
    """Client config pointing at temporary directories, no health probe."""
    return ClientConfig(
        cache_dir=tmp_path / "cache",
        bundle_dir=tmp_path / "bundle",
        health_probe=False,
    )


@pytest.fixture
def photo_factory(tmp_path):
    """Create person photos on disk."""
    def _make(name: str = "person.jpg", color=(120, 90, 60)) -> CapturedPhoto:
        path = tmp_path / "photos" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(make_image(color=color))
        return CapturedPhoto(path=path)
    return _make


@pytest.fixture
def upper_garment():
    return GarmentReference(
        garment_id="4",
        name="green-tshirt",
        cloth_type=ClothType.UPPER,
        image=RemoteImage(url="https://cdn.example.com/clothes/green-tshirt.png"),
    )


@pytest.fixture
def lower_garment():
    return GarmentReference(
        garment_id="6",
        name="baggy black jeans",
        cloth_type=ClothType.LOWER,
        image=RemoteImage(url="https://cdn.example.com/clothes/jeans.jpg"),
    )


@pytest.fixture
def bundled_garment(config):
    """A bundled garment whose file exists in the bundle directory."""
    config.bundle_dir.mkdir(parents=True, exist_ok=True)
    (config.bundle_dir / "sweatshirt.png").write_bytes(make_image(fmt="PNG", color=(200, 50, 120)))
    return GarmentReference(
        garment_id="3",
        name="colourfull-sweatshirt",
        cloth_type=ClothType.UPPER,
        image=BundledAsset(asset_id="sweatshirt.png"),
    )


@pytest.fixture
def resolved_garment(tmp_path):
    path = tmp_path / "resolved" / "cloth.png"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(make_image(fmt="PNG"))
    return ResolvedGarmentResource(path=path, mime_type="image/png", source="remote:test")


@pytest.fixture
def mock_services(resolved_garment):
    """Resolver and clients replaced by mocks."""
    resolver = MagicMock()
    resolver.resolve = AsyncMock(return_value=resolved_garment)
    resolver.close = AsyncMock()

    preprocess = MagicMock()
    preprocess.preprocess = AsyncMock(return_value=None)
    preprocess.close = AsyncMock()

    tryon = MagicMock()
    tryon.submit = AsyncMock(return_value=TryOnResult(image_bytes=make_image()))
    tryon.close = AsyncMock()
    tryon.last_request = None

    return {"resolver": resolver, "preprocess_client": preprocess, "tryon_client": tryon}
