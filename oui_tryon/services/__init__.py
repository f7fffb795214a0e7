"""Network and asset services used by the workflow."""

from .asset_resolver import AssetResolver, BundleDirectoryStore
from .collaborators import CaptureService, GalleryService, LocalAssetStore
from .preprocess_client import PreprocessClient
from .tryon_client import TryOnClient

__all__ = [
    "AssetResolver",
    "BundleDirectoryStore",
    "CaptureService",
    "GalleryService",
    "LocalAssetStore",
    "PreprocessClient",
    "TryOnClient",
]
