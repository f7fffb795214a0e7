"""Unit tests for garment resolution."""

import httpx
import pytest

from oui_tryon.models import BundledAsset, ErrorKind, GarmentReference, ResolutionError
from oui_tryon.services import AssetResolver, BundleDirectoryStore
from oui_tryon.utils import DiagnosticLog
from conftest import make_image


def make_resolver(config, handler=None, cache_resolved=False):
    transport = httpx.MockTransport(handler) if handler else None
    return AssetResolver(
        cache_dir=config.cache_dir,
        asset_store=BundleDirectoryStore(config.bundle_dir, config.cache_dir),
        log=DiagnosticLog(),
        cache_resolved=cache_resolved,
        transport=transport,
    )


class TestRemoteResolution:
    """Tests for downloading remote garment images."""

    @pytest.mark.asyncio
    async def test_download_png(self, config, upper_garment):
        png = make_image(fmt="PNG")
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, content=png)

        resolver = make_resolver(config, handler)
        resource = await resolver.resolve(upper_garment)

        assert resource.path.read_bytes() == png
        assert resource.path.parent == config.cache_dir
        assert resource.mime_type == "image/png"
        assert resource.upload_name == "cloth.png"
        assert seen[0].headers["Referer"] == "https://cdn.example.com/"
        await resolver.close()

    @pytest.mark.asyncio
    async def test_download_jpeg_mime(self, config, lower_garment):
        resolver = make_resolver(config, lambda request: httpx.Response(200, content=make_image()))
        resource = await resolver.resolve(lower_garment)
        assert resource.mime_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_404_is_download_error(self, config, upper_garment):
        resolver = make_resolver(config, lambda request: httpx.Response(404))

        with pytest.raises(ResolutionError) as exc_info:
            await resolver.resolve(upper_garment)

        assert exc_info.value.kind is ErrorKind.DOWNLOAD
        assert "404" in exc_info.value.error.message

    @pytest.mark.asyncio
    async def test_connection_failure_is_download_error(self, config, upper_garment):
        def handler(request):
            raise httpx.ConnectError("Name or service not known", request=request)

        resolver = make_resolver(config, handler)
        with pytest.raises(ResolutionError) as exc_info:
            await resolver.resolve(upper_garment)

        assert exc_info.value.kind is ErrorKind.DOWNLOAD

    @pytest.mark.asyncio
    async def test_timeout_is_download_error(self, config, upper_garment):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        resolver = make_resolver(config, handler)
        with pytest.raises(ResolutionError) as exc_info:
            await resolver.resolve(upper_garment)

        assert exc_info.value.kind is ErrorKind.DOWNLOAD

    @pytest.mark.asyncio
    async def test_empty_download_is_invalid_reference(self, config, upper_garment):
        resolver = make_resolver(config, lambda request: httpx.Response(200, content=b""))

        with pytest.raises(ResolutionError) as exc_info:
            await resolver.resolve(upper_garment)

        assert exc_info.value.kind is ErrorKind.INVALID_REFERENCE


class TestBundledResolution:
    """Tests for bundled asset materialization."""

    @pytest.mark.asyncio
    async def test_materializes_into_cache(self, config, bundled_garment):
        resolver = make_resolver(config)
        resource = await resolver.resolve(bundled_garment)

        assert resource.path.parent == config.cache_dir
        assert resource.path.read_bytes() == (config.bundle_dir / "sweatshirt.png").read_bytes()
        assert resource.mime_type == "image/png"
        assert resource.source == "bundled:sweatshirt.png"

    @pytest.mark.asyncio
    async def test_missing_asset_is_asset_load_error(self, config):
        ref = GarmentReference(garment_id="x", name="ghost", image=BundledAsset(asset_id="ghost.jpg"))
        resolver = make_resolver(config)

        with pytest.raises(ResolutionError) as exc_info:
            await resolver.resolve(ref)

        assert exc_info.value.kind is ErrorKind.ASSET_LOAD

    @pytest.mark.asyncio
    async def test_path_traversal_rejected(self, config):
        ref = GarmentReference(garment_id="x", name="evil", image=BundledAsset(asset_id="../secret.jpg"))
        resolver = make_resolver(config)

        with pytest.raises(ResolutionError) as exc_info:
            await resolver.resolve(ref)

        assert exc_info.value.kind is ErrorKind.ASSET_LOAD

    @pytest.mark.asyncio
    async def test_empty_asset_is_invalid_reference(self, config):
        config.bundle_dir.mkdir(parents=True, exist_ok=True)
        (config.bundle_dir / "empty.jpg").write_bytes(b"")
        ref = GarmentReference(garment_id="x", name="empty", image=BundledAsset(asset_id="empty.jpg"))
        resolver = make_resolver(config)

        with pytest.raises(ResolutionError) as exc_info:
            await resolver.resolve(ref)

        assert exc_info.value.kind is ErrorKind.INVALID_REFERENCE

    @pytest.mark.asyncio
    async def test_truncated_copy_is_materialized_again(self, config, bundled_garment):
        config.cache_dir.mkdir(parents=True, exist_ok=True)
        stale = config.cache_dir / "asset-sweatshirt.png"
        stale.write_bytes(b"")
        resolver = make_resolver(config)

        resource = await resolver.resolve(bundled_garment)

        assert resource.path == stale
        assert stale.read_bytes() == (config.bundle_dir / "sweatshirt.png").read_bytes()
        assert not list(config.cache_dir.glob("*.part"))


class TestResolutionCache:
    """Tests for the optional per-reference cache."""

    @pytest.mark.asyncio
    async def test_no_cache_by_default(self, config, upper_garment):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, content=make_image(fmt="PNG"))

        resolver = make_resolver(config, handler)
        first = await resolver.resolve(upper_garment)
        second = await resolver.resolve(upper_garment)

        assert len(calls) == 2
        assert first.path != second.path

    @pytest.mark.asyncio
    async def test_cache_reuses_and_recovers_from_deleted_file(self, config, upper_garment):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, content=make_image(fmt="PNG"))

        resolver = make_resolver(config, handler, cache_resolved=True)
        first = await resolver.resolve(upper_garment)
        second = await resolver.resolve(upper_garment)
        assert len(calls) == 1
        assert first == second

        first.path.unlink()
        third = await resolver.resolve(upper_garment)
        assert len(calls) == 2
        assert third.path.is_file()
