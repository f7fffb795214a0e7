"""Integration tests running the client workflow against the dev server."""

import io

import httpx
import pytest
from PIL import Image

from api import server
from oui_tryon.cli import main
from oui_tryon.models import WorkflowStep
from oui_tryon.pipeline import WorkflowController
from oui_tryon.services import AssetResolver, BundleDirectoryStore, PreprocessClient, TryOnClient
from oui_tryon.utils import DiagnosticLog
from conftest import FakeCamera, FakeGallery


@pytest.fixture(autouse=True)
def empty_cache():
    server._person_cache.clear()
    yield
    server._person_cache.clear()


def build_controller(config, garment, photo, health_probe=False):
    log = DiagnosticLog()
    transport = httpx.ASGITransport(app=server.app)
    return WorkflowController(
        config,
        garment,
        capture=FakeCamera([photo]),
        gallery=FakeGallery([photo]),
        resolver=AssetResolver(
            cache_dir=config.cache_dir,
            asset_store=BundleDirectoryStore(config.bundle_dir, config.cache_dir),
            log=log,
        ),
        preprocess_client=PreprocessClient(config.api, log, timeout=10, transport=transport),
        tryon_client=TryOnClient(
            config.api, log, timeout=10, health_probe=health_probe, transport=transport,
        ),
        log=log,
    )


@pytest.mark.integration
class TestDevServerRoundTrip:
    """Full workflow over the ASGI transport."""

    @pytest.mark.asyncio
    async def test_preprocessed_photo_produces_result(self, config, bundled_garment, photo_factory):
        controller = build_controller(config, bundled_garment, photo_factory())
        try:
            await controller.open_camera()
            await controller.take_photo()
            await controller.wait_for_preprocessing()
            assert controller.token is not None
            assert controller.token.value in server._person_cache

            assert await controller.submit() is True

            assert controller.step is WorkflowStep.RESULT
            image = controller.result.to_image()
            assert image.size == (64, 96)
            assert "cache_key" in controller.tryon_client.last_request.sending
            assert controller.tryon_client.last_request.reached is True
        finally:
            await controller.close()

    @pytest.mark.asyncio
    async def test_expired_cache_key_is_reported(self, config, bundled_garment, photo_factory):
        controller = build_controller(config, bundled_garment, photo_factory())
        try:
            await controller.pick_from_gallery()
            await controller.wait_for_preprocessing()
            server._person_cache.clear()

            assert await controller.submit() is False

            assert controller.step is WorkflowStep.PREVIEWING
            assert controller.error.http_status == 404
            assert "Preprocess the photo again" in controller.error_message
        finally:
            await controller.close()

    @pytest.mark.asyncio
    async def test_health_probe_is_logged(self, config, bundled_garment, photo_factory):
        controller = build_controller(config, bundled_garment, photo_factory(), health_probe=True)
        try:
            await controller.pick_from_gallery()
            assert await controller.submit() is True
            assert "1.5 Connectivity: OK" in controller.export_diagnostics()
        finally:
            await controller.close()

    @pytest.mark.asyncio
    async def test_result_can_be_saved(self, config, bundled_garment, photo_factory, tmp_path):
        controller = build_controller(config, bundled_garment, photo_factory())
        try:
            await controller.pick_from_gallery()
            await controller.submit()
            output = tmp_path / "out.jpg"
            controller.result.save(output)
            assert Image.open(io.BytesIO(output.read_bytes())).format == "JPEG"
        finally:
            await controller.close()


class TestCli:
    """Tests for the command line entry point."""

    def test_list_prints_catalog(self, capsys):
        assert main(["--list"]) == 0

        out = capsys.readouterr().out
        assert "baggy black jeans" in out
        assert len(out.strip().splitlines()) == 6

    def test_missing_photo_file(self, tmp_path, capsys):
        assert main([str(tmp_path / "nope.jpg")]) == 2
        assert "Photo not found" in capsys.readouterr().err

    def test_photo_argument_required(self):
        with pytest.raises(SystemExit):
            main([])
