"""Core request lifecycle for the Face Swap service.

Modules
-------
config
    Environment-based configuration using Pydantic Settings
    (``FACESWAP_*`` prefix, plus ``PORT`` and ``REPLICATE_API_TOKEN``).
errors
    Error taxonomy with the HTTP status each error maps to.
uploads
    Ingestion of the ``face``/``body`` uploads and guaranteed cleanup.
encoder
    Data URI encoding with Pillow-based media type detection.
job_runner
    The ``JobRunner`` protocol and its Replicate implementation.
artifacts
    Draining model output streams into files under the output directory.
pipeline
    ``SwapPipeline``, which ties the stages together.
"""

from faceswap.core.config import FaceSwapConfig, config
from faceswap.core.errors import SwapError

__all__ = [
    "FaceSwapConfig",
    "SwapError",
    "config",
]
