"""Face Swap Service - composite a face onto a body with a remote image model."""

__version__ = "0.1.0"

from faceswap.core.config import FaceSwapConfig, config

__all__ = [
    "FaceSwapConfig",
    "config",
]
