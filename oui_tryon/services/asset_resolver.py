"""Resolve garment references into local files that can be uploaded."""

import asyncio
import logging
import shutil
import uuid
from pathlib import Path
from urllib.parse import urlparse

import httpx

from ..models import (
    BundledAsset,
    ErrorKind,
    GarmentReference,
    RemoteImage,
    ResolutionError,
    ResolvedGarmentResource,
    mime_type_for,
)
from ..utils import DiagnosticLog
from .collaborators import LocalAssetStore

logger = logging.getLogger(__name__)


class BundleDirectoryStore:
    """Local asset store backed by a directory of bundled images.

    Materializing copies the bundled file into the cache directory once, so
    the upload layer always sees a plain file it owns.
    """

    def __init__(self, bundle_dir: Path, cache_dir: Path):
        self.bundle_dir = bundle_dir
        self.cache_dir = cache_dir

    async def materialize(self, asset_id: str) -> Path:
        if Path(asset_id).name != asset_id:
            raise ValueError(f"Invalid asset id: {asset_id!r}")

        source = self.bundle_dir / asset_id
        dest = self.cache_dir / f"asset-{asset_id}"
        if dest.is_file() and dest.stat().st_size > 0:
            return dest
        if not source.is_file():
            raise FileNotFoundError(f"Bundled asset not found: {source}")

        await asyncio.to_thread(self._copy, source, dest)
        return dest

    @staticmethod
    def _copy(source: Path, dest: Path):
        # Copy beside the target then rename, so dest is never a partial file
        dest.parent.mkdir(parents=True, exist_ok=True)
        partial = dest.with_name(f"{dest.name}.{uuid.uuid4().hex[:8]}.part")
        try:
            shutil.copy2(source, partial)
            partial.replace(dest)
        finally:
            partial.unlink(missing_ok=True)


class AssetResolver:
    """Turns a GarmentReference into a ResolvedGarmentResource.

    Remote images are downloaded into ``cache_dir``; bundled images go
    through the local asset store. Results can optionally be cached per
    reference for the lifetime of the resolver.
    """

    def __init__(
        self,
        cache_dir: Path,
        asset_store: LocalAssetStore,
        log: DiagnosticLog,
        download_timeout: float = 30.0,
        cache_resolved: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.cache_dir = cache_dir
        self.asset_store = asset_store
        self.log = log
        self.download_timeout = download_timeout
        self.cache_resolved = cache_resolved
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._resolved: dict[str, ResolvedGarmentResource] = {}

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the download client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.download_timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def resolve(self, ref: GarmentReference) -> ResolvedGarmentResource:
        key = ref.image.source_key
        cached = self._resolved.get(key)
        if cached is not None and cached.path.is_file():
            self.log.append(f"2. Cloth source cached: {key[:60]}")
            return cached

        self.log.append(f"2. Cloth source: {key[:60]}")
        if isinstance(ref.image, RemoteImage):
            resource = await self._download(ref.image)
        else:
            resource = await self._materialize(ref.image)

        self._validate(resource)

        if self.cache_resolved:
            self._resolved[key] = resource
        return resource

    async def _download(self, image: RemoteImage) -> ResolvedGarmentResource:
        self.log.append("3. Downloading cloth from URL...")

        # Some CDNs reject hotlinks without a browser-like Referer
        parsed = urlparse(image.url)
        origin = f"{parsed.scheme}://{parsed.netloc}"
        headers = {
            "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
            "Referer": origin + "/",
        }

        try:
            response = await self.client.get(image.url, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            self.log.append(f"ERR: cloth download returned {status}")
            raise ResolutionError(
                ErrorKind.DOWNLOAD,
                f"HTTP {status} for {image.url}",
                detail=e.response.reason_phrase,
            ) from e
        except httpx.HTTPError as e:
            message = str(e) or type(e).__name__
            self.log.append(f"ERR: cloth download failed ({message})")
            raise ResolutionError(ErrorKind.DOWNLOAD, message) from e

        dest = self.cache_dir / f"cloth-{uuid.uuid4().hex[:8]}.{image.extension}"
        try:
            await asyncio.to_thread(self._write, dest, response.content)
        except OSError as e:
            logger.warning("Unable to write downloaded cloth to %s: %s", dest, e)
            raise ResolutionError(ErrorKind.DOWNLOAD, f"Could not save download: {e}") from e

        self.log.append(f"4. Cloth downloaded: {str(dest)[:40]}...")
        return ResolvedGarmentResource(
            path=dest,
            mime_type=mime_type_for(dest.name),
            source=image.source_key,
        )

    async def _materialize(self, image: BundledAsset) -> ResolvedGarmentResource:
        self.log.append("3. Resolving cloth from local assets...")
        try:
            path = await self.asset_store.materialize(image.asset_id)
        except (OSError, ValueError) as e:
            self.log.append(f"ERR: cloth asset failed ({e})")
            raise ResolutionError(ErrorKind.ASSET_LOAD, str(e) or type(e).__name__) from e

        self.log.append(f"4. Cloth local path: {str(path)[:40]}...")
        return ResolvedGarmentResource(
            path=path,
            mime_type=mime_type_for(path.name),
            source=image.source_key,
        )

    def _validate(self, resource: ResolvedGarmentResource):
        """An empty handle is a failed resolution, never an empty upload."""
        path = resource.path
        if len(str(path)) < 2 or not path.is_file() or path.stat().st_size == 0:
            self.log.append(f"ERR: invalid cloth reference {str(path)!r}")
            raise ResolutionError(
                ErrorKind.INVALID_REFERENCE,
                "Cloth image URI is missing",
                detail=str(path),
            )

    @staticmethod
    def _write(dest: Path, content: bytes):
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(content)

    async def close(self):
        """Close the download client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
