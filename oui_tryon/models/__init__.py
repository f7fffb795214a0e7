"""Data models for the try-on workflow."""

from .errors import (
    ClassifiedError,
    ErrorKind,
    ResolutionError,
    SubmissionError,
    TryOnError,
)
from .garment import (
    BundledAsset,
    ClothType,
    GarmentReference,
    RemoteImage,
    ResolvedGarmentResource,
    mime_type_for,
)
from .session import (
    CapturedPhoto,
    PreprocessToken,
    RequestDetails,
    TryOnResult,
    WorkflowStep,
)

__all__ = [
    "BundledAsset",
    "CapturedPhoto",
    "ClassifiedError",
    "ClothType",
    "ErrorKind",
    "GarmentReference",
    "PreprocessToken",
    "RemoteImage",
    "RequestDetails",
    "ResolutionError",
    "ResolvedGarmentResource",
    "SubmissionError",
    "TryOnError",
    "TryOnResult",
    "WorkflowStep",
    "mime_type_for",
]
