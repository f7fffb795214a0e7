"""Client for the primary try-on inference request."""

import asyncio
import binascii
import logging

import httpx

from ..config import ApiConfig
from ..models import (
    CapturedPhoto,
    ClassifiedError,
    ClothType,
    ErrorKind,
    PreprocessToken,
    RequestDetails,
    ResolvedGarmentResource,
    SubmissionError,
    TryOnResult,
)
from ..utils import DiagnosticLog
from .base import ApiClient

logger = logging.getLogger(__name__)


class TryOnClient(ApiClient):
    """Submits ``POST /api/try-on`` and classifies every failure.

    The person is sent either as a ``cache_key`` from preprocessing or as the
    full ``person_image`` file, never both. ``last_request`` keeps a summary
    of the most recent attempt for the debug report.
    """

    def __init__(
        self,
        config: ApiConfig,
        log: DiagnosticLog,
        timeout: float = 180.0,
        health_timeout: float = 10.0,
        health_probe: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(config, log, timeout, transport=transport)
        self.health_timeout = health_timeout
        self.health_probe = health_probe
        self.last_request: RequestDetails | None = None

    async def check_connection(self) -> bool:
        """Advisory GET /health. Only logs, never raises."""
        try:
            response = await self.client.get(
                self.config.health_url,
                timeout=self.health_timeout,
            )
        except httpx.HTTPError as e:
            self.log.append(f"1.5 Connectivity: failed ({str(e) or type(e).__name__})")
            return False

        if not response.is_success:
            self.log.append(f"1.5 Connectivity: health returned {response.status_code}")
            return False

        try:
            status = response.json().get("status", "unknown")
        except (ValueError, AttributeError):
            status = "unknown"
        self.log.append(f"1.5 Connectivity: OK (health reached, status={status})")
        return True

    async def submit(
        self,
        person: CapturedPhoto | PreprocessToken,
        garment: ResolvedGarmentResource,
        cloth_type: ClothType,
    ) -> TryOnResult:
        """Run one try-on attempt.

        Raises:
            SubmissionError: classified as Timeout, NetworkUnreachable,
                ServerRejected or MalformedResponse.
        """
        url = self.config.tryon_url
        details = RequestDetails(url=url)
        self.last_request = details
        self.log.append(f"0. API URL: {url}")
        self.log.append("1. Start")

        if self.health_probe:
            await self.check_connection()

        data = {"cloth_type": cloth_type.value}
        files = {}
        if isinstance(person, PreprocessToken):
            data["cache_key"] = person.value
            person_field = f"cache_key: {person.preview}"
        else:
            files["person_image"] = (
                "person.jpg",
                await self._read(person.path, ErrorKind.INVALID_REFERENCE),
                person.mime_type,
            )
            person_field = "person_image: (file from camera/gallery)"

        files["cloth_image"] = (
            garment.upload_name,
            await self._read(garment.path, ErrorKind.ASSET_LOAD),
            garment.mime_type,
        )
        details.sending = "\n".join([
            f"Person: {person_field}",
            f"cloth_type: {cloth_type.value}",
            f"cloth_image: {garment.mime_type}, name={garment.upload_name}",
        ])
        self.log.append(f"5. FormData ready ({person_field.split(':')[0]}, cloth {garment.mime_type})")

        self.log.append("6. Fetching...")
        try:
            response = await asyncio.wait_for(
                self.client.post(url, data=data, files=files),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise self._fail(ClassifiedError(
                kind=ErrorKind.TIMEOUT,
                message=f"Request timed out after {self.timeout:g}s",
            )) from e
        except httpx.RequestError as e:
            raise self._fail(ClassifiedError(
                kind=ErrorKind.NETWORK_UNREACHABLE,
                message=str(e) or type(e).__name__,
                detail=type(e).__name__,
            )) from e

        details.reached = True
        details.response_status = response.status_code
        self.log.append(f"7. Response: {response.status_code} {response.reason_phrase}")

        if not response.is_success:
            raise self._fail(self._classify_rejection(response))

        result = self._parse_result(response)
        self.log.append("8. Success")
        return result

    def _classify_rejection(self, response: httpx.Response) -> ClassifiedError:
        body = response.text
        logger.warning("Try-on rejected with %s: %s", response.status_code, body[:300])
        try:
            payload = response.json()
        except ValueError:
            detail = body.strip()[:100] or response.reason_phrase
        else:
            raw = payload.get("detail") if isinstance(payload, dict) else None
            detail = raw if isinstance(raw, str) else (str(raw) if raw else None)

        return ClassifiedError(
            kind=ErrorKind.SERVER_REJECTED,
            message=detail or f"Request failed {response.status_code}",
            http_status=response.status_code,
            detail=detail,
        )

    def _parse_result(self, response: httpx.Response) -> TryOnResult:
        try:
            payload = response.json()
        except ValueError as e:
            raise self._fail(self._malformed("Response is not JSON")) from e

        image = payload.get("imageBase64") if isinstance(payload, dict) else None
        if not isinstance(image, str) or not image:
            keys = sorted(payload) if isinstance(payload, dict) else []
            raise self._fail(self._malformed(f"Invalid response: no image (keys {keys})"))

        if image.startswith("data:"):
            # Remove data URL prefix (e.g., "data:image/png;base64,")
            image = image.partition(",")[2]
            if not image:
                raise self._fail(self._malformed("Invalid response: data URL without image data"))
        try:
            return TryOnResult.from_base64(image)
        except (binascii.Error, ValueError) as e:
            raise self._fail(self._malformed(f"Image payload is not base64: {e}")) from e

    def _malformed(self, message: str) -> ClassifiedError:
        return ClassifiedError(
            kind=ErrorKind.MALFORMED_RESPONSE,
            message=message,
            http_status=self.last_request.response_status if self.last_request else None,
        )

    def _fail(self, error: ClassifiedError) -> SubmissionError:
        """Record a failed attempt and build the exception to raise."""
        if self.last_request is not None:
            if self.last_request.reached is None:
                self.last_request.reached = False
            self.last_request.error = error.message
        self.log.append(f"ERR: {error.kind.value} - {error.message}")
        return SubmissionError(error)

    async def _read(self, path, kind: ErrorKind) -> bytes:
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise self._fail(ClassifiedError(
                kind=kind,
                message=f"Could not read {path.name}: {e}",
            )) from e
