"""Client-side orchestration for the virtual try-on workflow."""

from .config import ClientConfig, load_config
from .pipeline import WorkflowController

__version__ = "1.0.0"

__all__ = ["ClientConfig", "WorkflowController", "load_config"]
