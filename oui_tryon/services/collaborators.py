"""Interfaces of the platform services the workflow drives.

Camera, gallery and bundled-asset access are provided by the host
application. Returning ``None`` from ``capture`` or ``pick_image`` means the
user cancelled, which is a normal transition and not an error.
"""

from pathlib import Path
from typing import Protocol

from ..models import CapturedPhoto


class CaptureService(Protocol):
    async def has_permission(self) -> bool: ...

    async def request_permission(self) -> bool: ...

    async def capture(self) -> CapturedPhoto | None: ...


class GalleryService(Protocol):
    async def request_permission(self) -> bool: ...

    async def pick_image(self) -> CapturedPhoto | None: ...


class LocalAssetStore(Protocol):
    async def materialize(self, asset_id: str) -> Path:
        """Return a local file holding the bundled bytes for ``asset_id``."""
        ...
