"""Background person preprocessing, producing a reusable cache key."""

import asyncio

import httpx

from ..models import CapturedPhoto, ClothType, PreprocessToken
from .base import ApiClient


class PreprocessClient(ApiClient):
    """Best-effort client for ``POST /api/preprocess-person``.

    Never raises for network, HTTP or payload problems: those are written to
    the diagnostic log and ``None`` is returned, so the next submission falls
    back to uploading the full photo.
    """

    async def preprocess(
        self,
        photo: CapturedPhoto,
        cloth_type: ClothType,
        generation: int = 0,
    ) -> PreprocessToken | None:
        url = self.config.preprocess_url
        self.log.append(f"[PREPROCESS] Start {url} cloth_type={cloth_type.value}")

        try:
            content = await asyncio.to_thread(photo.path.read_bytes)
        except OSError as e:
            self.log.append(f"[PREPROCESS] Could not read photo: {e}")
            return None

        try:
            response = await self.client.post(
                url,
                data={"cloth_type": cloth_type.value},
                files={"person_image": ("person.jpg", content, photo.mime_type)},
            )
        except httpx.HTTPError as e:
            self.log.append(f"[PREPROCESS] Failed: {type(e).__name__} {e}")
            return None

        self.log.append(f"[PREPROCESS] Response {response.status_code}")
        if not response.is_success:
            self.log.append(f"[PREPROCESS] Error {response.status_code} {response.text[:200]}")
            return None

        try:
            data = response.json()
        except ValueError:
            self.log.append("[PREPROCESS] Response is not JSON")
            return None

        cache_key = data.get("cache_key") if isinstance(data, dict) else None
        if not (isinstance(data, dict) and data.get("success") and isinstance(cache_key, str) and cache_key):
            keys = sorted(data) if isinstance(data, dict) else []
            self.log.append(f"[PREPROCESS] OK but no cache_key {keys}")
            return None

        token = PreprocessToken(
            value=cache_key,
            cloth_type=cloth_type,
            photo_generation=generation,
        )
        self.log.append(f"[PREPROCESS] Success cache_key {token.preview}")
        return token
