"""Try-on workflow state machine."""

import asyncio
import logging
from collections.abc import Callable

from ..config import ClientConfig
from ..models import (
    CapturedPhoto,
    ClassifiedError,
    ErrorKind,
    GarmentReference,
    PreprocessToken,
    TryOnError,
    TryOnResult,
    WorkflowStep,
)
from ..services import (
    AssetResolver,
    BundleDirectoryStore,
    CaptureService,
    GalleryService,
    PreprocessClient,
    TryOnClient,
)
from ..utils import DiagnosticEntry, DiagnosticLog

logger = logging.getLogger(__name__)

StepListener = Callable[[WorkflowStep, WorkflowStep], None]


class WorkflowController:
    """Drives one garment try-on from photo acquisition to result.

    Flow:
    1. Choosing -> Capturing (camera) or straight to Previewing (gallery)
    2. As soon as a photo is available, preprocessing starts in the background
    3. Submit: resolve the garment, then send the try-on request, reusing the
       preprocessing cache key when one exists for the current photo
    4. Result, or back to Previewing with a classified error

    Every photo gets a new generation number. Background preprocessing
    results are only applied when their generation is still current, and a
    token is only sent with the photo it was issued for.
    """

    def __init__(
        self,
        config: ClientConfig,
        garment: GarmentReference,
        capture: CaptureService,
        gallery: GalleryService,
        resolver: AssetResolver | None = None,
        preprocess_client: PreprocessClient | None = None,
        tryon_client: TryOnClient | None = None,
        log: DiagnosticLog | None = None,
    ):
        self.config = config
        self.garment = garment
        self.capture_service = capture
        self.gallery_service = gallery
        self.log = log if log is not None else DiagnosticLog(config.diagnostic_log_limit)

        # Initialize services
        self.resolver = resolver or AssetResolver(
            cache_dir=config.cache_dir,
            asset_store=BundleDirectoryStore(config.bundle_dir, config.cache_dir),
            log=self.log,
            download_timeout=config.timeouts.download,
            cache_resolved=config.cache_resolved_garments,
        )
        self.preprocess_client = preprocess_client or PreprocessClient(
            config.api,
            self.log,
            timeout=config.timeouts.preprocess,
        )
        self.tryon_client = tryon_client or TryOnClient(
            config.api,
            self.log,
            timeout=config.timeouts.tryon,
            health_timeout=config.timeouts.health,
            health_probe=config.health_probe,
        )

        self._step = WorkflowStep.CHOOSING
        self.photo: CapturedPhoto | None = None
        self.token: PreprocessToken | None = None
        self.result: TryOnResult | None = None
        self.error: ClassifiedError | None = None
        self.permission_needed = False

        self._generation = 0
        self._submitting = False
        self._preprocessing: dict[asyncio.Task, int] = {}
        self._listeners: list[StepListener] = []

    # -- presentation surface ------------------------------------------------

    @property
    def step(self) -> WorkflowStep:
        return self._step

    @property
    def photo_generation(self) -> int:
        return self._generation

    @property
    def has_photo(self) -> bool:
        return self.photo is not None

    @property
    def has_result(self) -> bool:
        return self.result is not None

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    @property
    def can_submit(self) -> bool:
        """Whether the try-on control is enabled."""
        return (
            self._step is WorkflowStep.PREVIEWING
            and self.photo is not None
            and not self._submitting
        )

    @property
    def is_preprocessing(self) -> bool:
        return any(gen == self._generation for gen in self._preprocessing.values())

    @property
    def error_message(self) -> str | None:
        """Human-readable text for the error panel, if any."""
        if self.error is None:
            return None
        message = self.error.user_message()
        if self.config.show_error_details and self.error.kind is not ErrorKind.PERMISSION_DENIED:
            url = self.tryon_client.last_request.url if self.tryon_client.last_request else None
            message = f"{message}\n\n{self.error.full_detail(url)}"
        return message

    def add_listener(self, listener: StepListener):
        """Register a callback invoked with (previous, current) on every step change."""
        self._listeners.append(listener)

    def diagnostics(self) -> tuple[DiagnosticEntry, ...]:
        return self.log.snapshot()

    def export_diagnostics(self) -> str:
        """Debug report suitable for sharing with support."""
        parts = ["--- Try-on debug log ---", *self.log.lines()]
        details = self.tryon_client.last_request
        if details is not None:
            parts += ["", details.describe()]
        if self.error is not None:
            url = details.url if details else None
            parts += ["", "Error details:", self.error.full_detail(url)]
        return "\n".join(parts)

    # -- Choosing / Capturing ------------------------------------------------

    async def open_camera(self):
        """Choosing -> Capturing. Flags missing camera permission."""
        if self._step is not WorkflowStep.CHOOSING:
            self._ignored("open_camera")
            return
        self.error = None
        self._set_step(WorkflowStep.CAPTURING)

        try:
            granted = await self.capture_service.has_permission()
        except Exception as e:
            self._camera_unavailable("Permission check failed", e)
            return
        if self._step is not WorkflowStep.CAPTURING:
            return
        self.permission_needed = not granted
        if not granted:
            self.error = ClassifiedError(
                kind=ErrorKind.PERMISSION_DENIED,
                message="Camera access is needed to take your photo.",
            )

    async def request_camera_permission(self) -> bool:
        """Pass-through to the capture service's permission prompt."""
        if self._step is not WorkflowStep.CAPTURING:
            self._ignored("request_camera_permission")
            return False

        try:
            granted = await self.capture_service.request_permission()
        except Exception as e:
            self._camera_unavailable("Permission request failed", e)
            return False
        self.log.append(f"[CAMERA] Permission {'granted' if granted else 'denied'}")
        if self._step is not WorkflowStep.CAPTURING:
            return granted
        self.permission_needed = not granted
        self.error = None if granted else ClassifiedError(
            kind=ErrorKind.PERMISSION_DENIED,
            message="Camera permission denied. Allow camera access to take your photo.",
        )
        return granted

    async def take_photo(self):
        """Capture a photo. A cancelled capture stays in Capturing."""
        if self._step is not WorkflowStep.CAPTURING or self.permission_needed:
            self._ignored("take_photo")
            return

        try:
            photo = await self.capture_service.capture()
        except Exception as e:
            self._camera_unavailable("Capture failed", e)
            return

        if self._step is not WorkflowStep.CAPTURING:
            self.log.append("[CAMERA] Photo arrived after leaving the camera, ignored")
            return
        if photo is None:
            self.log.append("[CAMERA] Capture cancelled")
            return
        self._accept_photo(photo)

    def cancel_capture(self):
        """Capturing -> Choosing."""
        if self._step is not WorkflowStep.CAPTURING:
            self._ignored("cancel_capture")
            return
        self.permission_needed = False
        self.error = None
        self._set_step(WorkflowStep.CHOOSING)

    async def pick_from_gallery(self):
        """Choosing -> Previewing with a gallery photo."""
        if self._step is not WorkflowStep.CHOOSING:
            self._ignored("pick_from_gallery")
            return
        self.error = None

        try:
            granted = await self.gallery_service.request_permission()
            if not granted:
                self.error = ClassifiedError(
                    kind=ErrorKind.PERMISSION_DENIED,
                    message="Permission needed. Allow access to your photos to upload.",
                )
                return
            photo = await self.gallery_service.pick_image()
        except Exception as e:
            logger.exception("Photo picker failed")
            self.log.append(f"[PICK_IMAGE] Failed: {type(e).__name__} {e}")
            self.error = ClassifiedError(
                kind=ErrorKind.UNEXPECTED,
                message='Photo picker not available. Use "Capture Photo" instead.',
                detail=f"{type(e).__name__}: {e}",
            )
            return

        if self._step is not WorkflowStep.CHOOSING:
            self.log.append("[PICK_IMAGE] Photo arrived after leaving Choosing, ignored")
            return
        if photo is None:
            self.log.append("[PICK_IMAGE] Cancelled")
            return
        self._accept_photo(photo)

    # -- Previewing ----------------------------------------------------------

    def discard_photo(self):
        """Previewing -> Choosing. The token is invalidated immediately."""
        if self._step is not WorkflowStep.PREVIEWING or self._submitting:
            self._ignored("discard_photo")
            return
        self._clear_photo()
        self._set_step(WorkflowStep.CHOOSING)

    def dismiss_error(self):
        self.error = None
        self.tryon_client.last_request = None

    def select_garment(self, garment: GarmentReference):
        """Switch garment. A category change re-runs preprocessing for the live photo."""
        if self._submitting:
            self._ignored("select_garment")
            return
        previous = self.garment
        self.garment = garment
        self.log.append(f"[GARMENT] {garment.name} ({garment.cloth_type.value})")

        if self.photo is not None and garment.cloth_type is not previous.cloth_type:
            if self._live_token() is None:
                self._start_preprocess()

    async def submit(self) -> bool:
        """Run the try-on. Returns True when a result was produced.

        Duplicate calls while an attempt is in flight are rejected. The garment
        is resolved before entering Submitting, so a resolution failure keeps
        the workflow in Previewing.
        """
        if not self.can_submit:
            self._ignored("submit")
            return False

        self._submitting = True
        self.error = None
        self.result = None
        garment = self.garment
        generation = self._generation

        try:
            resource = await self.resolver.resolve(garment)

            token = self._live_token()
            person = token or self.photo
            self.log.append(
                f"[TRY-ON] Using {'cache_key ' + token.preview if token else 'person_image'}"
            )
            self._set_step(WorkflowStep.SUBMITTING)
            result = await self.tryon_client.submit(person, resource, garment.cloth_type)
        except TryOnError as e:
            self._fail(e.error)
        except Exception as e:
            logger.exception("Unexpected try-on failure")
            self._fail(ClassifiedError.unexpected(e))
        else:
            if generation != self._generation:
                self.log.append("[TRY-ON] Result for a discarded photo, ignored")
            else:
                self.result = result
                self._set_step(WorkflowStep.RESULT)
                self.log.append(f"[TRY-ON] Success ({result.size_bytes} bytes)")
        finally:
            self._submitting = False
            if self._step is WorkflowStep.SUBMITTING:
                self._set_step(WorkflowStep.PREVIEWING)

        return self._step is WorkflowStep.RESULT

    # -- Result --------------------------------------------------------------

    def try_another(self, garment: GarmentReference | None = None):
        """Result -> Previewing, keeping the photo."""
        if self._step is not WorkflowStep.RESULT:
            self._ignored("try_another")
            return
        self.result = None
        self.error = None
        if garment is not None:
            self.select_garment(garment)
        self._set_step(WorkflowStep.PREVIEWING)

    def exit_flow(self):
        """Leave the flow and clear all ephemeral state."""
        if self._submitting:
            self._ignored("exit_flow")
            return
        self._clear_photo()
        self.tryon_client.last_request = None
        self._set_step(WorkflowStep.CHOOSING)

    def back(self) -> bool:
        """Handle a back press. False means the caller should navigate away."""
        if self._step is WorkflowStep.CAPTURING:
            self.cancel_capture()
            return True
        if self._step is WorkflowStep.PREVIEWING and not self._submitting:
            self.discard_photo()
            return True
        if self._step is WorkflowStep.RESULT:
            self.exit_flow()
            return True
        return False

    # -- background preprocessing ------------------------------------------

    async def wait_for_preprocessing(self):
        """Wait for preprocessing calls still in flight."""
        pending = list(self._preprocessing)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def _start_preprocess(self):
        photo = self.photo
        if photo is None:
            return
        task = asyncio.create_task(
            self._preprocess(photo, self.garment.cloth_type, self._generation)
        )
        self._preprocessing[task] = self._generation
        task.add_done_callback(self._preprocessing.pop)

    async def _preprocess(self, photo: CapturedPhoto, cloth_type, generation: int):
        try:
            token = await self.preprocess_client.preprocess(photo, cloth_type, generation)
        except Exception as e:
            logger.exception("Preprocessing failed")
            self.log.append(f"[PREPROCESS] Crashed: {type(e).__name__} {e}")
            token = None

        if generation != self._generation:
            self.log.append(f"[PREPROCESS] Ignoring result for discarded photo #{generation}")
            return
        if token is None:
            return
        if token.cloth_type is not self.garment.cloth_type:
            self.log.append(f"[PREPROCESS] Ignoring {token.cloth_type.value} cache_key")
            return
        self.token = token

    def _live_token(self) -> PreprocessToken | None:
        token = self.token
        if token is None or token.photo_generation != self._generation:
            return None
        if token.cloth_type is not self.garment.cloth_type:
            return None
        return token

    # -- internals -----------------------------------------------------------

    def _accept_photo(self, photo: CapturedPhoto):
        self._generation += 1
        self.photo = photo
        self.token = None
        self.result = None
        self.error = None
        self.permission_needed = False
        self.log.append(f"[PHOTO] #{self._generation} {photo.path.name}")
        self._set_step(WorkflowStep.PREVIEWING)
        self._start_preprocess()

    def _clear_photo(self):
        self._generation += 1
        self.photo = None
        self.token = None
        self.result = None
        self.error = None
        self.permission_needed = False

    def _fail(self, error: ClassifiedError):
        self.error = error
        self.log.append(f"[TRY-ON] Failed: {error.kind.value}")
        self._set_step(WorkflowStep.PREVIEWING)

    def _camera_unavailable(self, what: str, exc: Exception):
        """Surface a broken camera inline and fall back to Choosing."""
        logger.exception("Camera %s", what.lower())
        self.log.append(f"[CAMERA] {what}: {type(exc).__name__} {exc}")
        if self._step is not WorkflowStep.CAPTURING:
            return
        self.permission_needed = False
        self.error = ClassifiedError(
            kind=ErrorKind.UNEXPECTED,
            message='Camera not available. Use "Upload Photo" to choose an image from your gallery.',
            detail=f"{type(exc).__name__}: {exc}",
        )
        self._set_step(WorkflowStep.CHOOSING)

    def _ignored(self, action: str):
        self.log.append(f"[FLOW] {action} ignored in {self._step.value}")

    def _set_step(self, step: WorkflowStep):
        previous = self._step
        if previous is step:
            return
        self._step = step
        self.log.append(f"[FLOW] {previous.value} -> {step.value}")
        for listener in self._listeners:
            listener(previous, step)

    async def close(self):
        """Stop background work and close HTTP clients."""
        for task in list(self._preprocessing):
            task.cancel()
        await self.wait_for_preprocessing()
        await self.preprocess_client.close()
        await self.tryon_client.close()
        await self.resolver.close()
