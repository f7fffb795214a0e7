"""FastAPI development server implementing the try-on HTTP contract.

Stands in for the remote inference service during local development:
- GET  /health                    readiness probe
- POST /api/preprocess-person     caches the person photo, returns cache_key
- POST /api/try-on                pastes the garment over the person photo

No model runs here. The composite only proves the request made it through.
"""

import asyncio
import base64
import hashlib
import io

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel
from pydantic_settings import BaseSettings


class DevServerSettings(BaseSettings):
    """Dev server knobs, read from TRYON_DEV_* environment variables."""
    delay: float = 0.0  # seconds to sleep before answering try-on
    cache_size: int = 64

    class Config:
        env_prefix = "TRYON_DEV_"
        extra = "ignore"


app = FastAPI(
    title="Try-On Dev Server",
    description="Local stand-in for the virtual try-on inference service",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

CLOTH_TYPES = ("upper", "lower", "overall")

# Vertical band of the person image covered by each category
_REGIONS = {
    "upper": (0.18, 0.58),
    "lower": (0.50, 0.95),
    "overall": (0.18, 0.95),
}


class PreprocessResponse(BaseModel):
    success: bool
    cache_key: str | None = None


class TryOnResponse(BaseModel):
    imageBase64: str


_settings: DevServerSettings | None = None
_person_cache: dict[str, bytes] = {}


def get_settings() -> DevServerSettings:
    """Get or create the settings instance."""
    global _settings
    if _settings is None:
        _settings = DevServerSettings()
    return _settings


def _open_image(data: bytes, field: str) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError):
        raise HTTPException(status_code=400, detail=f"{field} is not a valid image")
    return img


def _check_cloth_type(cloth_type: str):
    if cloth_type not in CLOTH_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"cloth_type must be one of {', '.join(CLOTH_TYPES)}",
        )


def compose(person: Image.Image, garment: Image.Image, cloth_type: str) -> bytes:
    """Paste the garment over the body region for ``cloth_type``, return JPEG bytes."""
    canvas = person.convert("RGB")
    top, bottom = _REGIONS[cloth_type]
    box_w = int(canvas.width * 0.6)
    box_h = max(1, int(canvas.height * (bottom - top)))

    overlay = garment.convert("RGBA")
    overlay.thumbnail((max(1, box_w), box_h))
    x = (canvas.width - overlay.width) // 2
    y = int(canvas.height * top)
    canvas.paste(overlay, (x, y), overlay)

    output = io.BytesIO()
    canvas.save(output, format="JPEG", quality=90)
    return output.getvalue()


@app.get("/health")
async def health():
    """Readiness probe."""
    return {"status": "ready", "cached_people": len(_person_cache)}


@app.post("/api/preprocess-person", response_model=PreprocessResponse)
async def preprocess_person(
    person_image: UploadFile = File(...),
    cloth_type: str = Form("upper"),
):
    """Cache the person photo and hand back a key that replaces re-uploading it."""
    _check_cloth_type(cloth_type)
    data = await person_image.read()
    _open_image(data, "person_image")

    cache_key = hashlib.sha256(data + cloth_type.encode()).hexdigest()
    if len(_person_cache) >= get_settings().cache_size:
        _person_cache.pop(next(iter(_person_cache)))
    _person_cache[cache_key] = data
    return PreprocessResponse(success=True, cache_key=cache_key)


@app.post("/api/try-on", response_model=TryOnResponse)
async def try_on(
    cloth_image: UploadFile = File(...),
    cloth_type: str = Form("upper"),
    cache_key: str | None = Form(None),
    person_image: UploadFile | None = File(None),
):
    """Compose a try-on preview.

    Exactly one of ``cache_key`` and ``person_image`` must be sent.
    """
    _check_cloth_type(cloth_type)
    if (cache_key is None) == (person_image is None):
        raise HTTPException(
            status_code=400,
            detail="Send exactly one of cache_key or person_image",
        )

    if cache_key is not None:
        person_bytes = _person_cache.get(cache_key)
        if person_bytes is None:
            raise HTTPException(
                status_code=404,
                detail="Unknown cache_key. Preprocess the photo again.",
            )
    else:
        person_bytes = await person_image.read()

    person = _open_image(person_bytes, "person_image")
    garment = _open_image(await cloth_image.read(), "cloth_image")

    delay = get_settings().delay
    if delay > 0:
        await asyncio.sleep(delay)

    result = compose(person, garment, cloth_type)
    return TryOnResponse(imageBase64=base64.b64encode(result).decode("utf-8"))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
