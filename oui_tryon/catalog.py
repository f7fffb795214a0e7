"""Clothing catalog offered for try-on."""

from collections.abc import Sequence

from .models import ClothType, GarmentReference, RemoteImage

_CDN = "https://res.cloudinary.com/dp3vs4mxa/image/upload"

CLOTHING_ITEMS: list[GarmentReference] = [
    GarmentReference(
        garment_id="1", name="full suit", price="$48", cloth_type=ClothType.OVERALL,
        image=RemoteImage(url=f"{_CDN}/v1769873236/full_suit_hurxcg.png"),
    ),
    GarmentReference(
        garment_id="2", name="blue shirt", price="$26", cloth_type=ClothType.UPPER,
        image=RemoteImage(url=f"{_CDN}/v1769873233/blue_shirt_xzvm4u.png"),
    ),
    GarmentReference(
        garment_id="3", name="colourfull-sweatshirt", price="$25", cloth_type=ClothType.UPPER,
        image=RemoteImage(url=f"{_CDN}/v1769873233/colourfull-sweatshirt_v8mpbp.png"),
    ),
    GarmentReference(
        garment_id="4", name="Classic suit", price="$45", cloth_type=ClothType.UPPER,
        image=RemoteImage(url=f"{_CDN}/v1769873233/green-tshirt_f3hnxr.png"),
    ),
    GarmentReference(
        garment_id="5", name="purple-shirt", price="$28", cloth_type=ClothType.UPPER,
        image=RemoteImage(url=f"{_CDN}/v1769873233/purple-shirt_g9dnxn.png"),
    ),
    GarmentReference(
        garment_id="6", name="baggy black jeans", price="$32", cloth_type=ClothType.LOWER,
        image=RemoteImage(url=f"{_CDN}/v1769873232/baggy_black_jeans_tjiqvm.png"),
    ),
]


def normalize_garment_id(value: object) -> str:
    """Routing params may arrive as None, a string or a list of strings."""
    if value is None:
        return "1"
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)) and value and isinstance(value[0], str):
        return value[0]
    return str(value)


def get_garment_by_id(
    garment_id: object,
    items: Sequence[GarmentReference] = CLOTHING_ITEMS,
) -> GarmentReference:
    """Look up a garment, falling back to the first item for unknown ids."""
    if not items:
        raise LookupError("Catalog is empty")
    wanted = normalize_garment_id(garment_id)
    return next((item for item in items if item.garment_id == wanted), items[0])
