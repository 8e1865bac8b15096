"""Configuration management for the Face Swap service.

This module provides centralized configuration management using Pydantic Settings.
Configuration is loaded from environment variables with the FACESWAP_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (FACESWAP_* prefix)
2. .env file in the project root
3. Default values defined in FaceSwapConfig

Two settings also honour the conventional unprefixed names used by hosting
platforms and the Replicate client:

- ``PORT`` for the listening port
- ``REPLICATE_API_TOKEN`` for the remote job runner credential

Example .env file:
    REPLICATE_API_TOKEN=r8_xxxxxxxxxxxxxxxxxxxx
    PORT=3000
    FACESWAP_MODEL_ID=qwen/qwen-image-edit-plus
    FACESWAP_OUTPUTS_DIR=outputs

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time and
is used by the application factory when no explicit configuration is passed.

Usage Example
-------------
    from faceswap.core.config import config

    print(config.model_id)
    print(config.outputs_dir)

Directory Management
--------------------
The configuration creates the required directories on initialization:
- uploads_dir: Per-request temporary uploads (deleted after each request)
- outputs_dir: Generated images served under ``/outputs``
"""

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class FaceSwapConfig(BaseSettings):
    """Main configuration for the Face Swap service.

    Attributes
    ----------
    Remote Job Runner:
        replicate_api_token : SecretStr | None
            Replicate API token. Without it the service still starts, but
            every swap fails at the remote invocation stage.
        model_id : str
            Replicate model reference used for compositing.
        output_format : Literal["jpg", "png", "webp"]
            Image format requested from the model; also the artifact extension.
        generation_timeout : float | None
            Upper bound in seconds on waiting for the remote job. None waits
            indefinitely.

    Paths:
        uploads_dir : Path
            Directory for temporary uploaded files
        outputs_dir : Path
            Directory for generated images (publicly served)

    Upload Limits:
        max_upload_bytes : int
            Maximum accepted size for each uploaded image

    Server Settings:
        server_host : str
            Bind address for uvicorn
        server_port : int
            Listening port (1-65535)
        public_base_url : str | None
            Base URL used to build artifact links. When unset, links are
            derived from the incoming request's scheme and host.
        cors_allow_origins : list[str]
            Origins allowed by the CORS middleware
        log_level : str
            Root logging level used by the CLI entry point
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FACESWAP_",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
        protected_namespaces=("settings_",),
    )

    # Remote job runner
    replicate_api_token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "replicate_api_token",
            "FACESWAP_REPLICATE_API_TOKEN",
            "REPLICATE_API_TOKEN",
        ),
        description="Replicate API token",
    )
    model_id: str = Field(
        default="qwen/qwen-image-edit-plus",
        description="Replicate model reference used for face/body compositing",
    )
    output_format: Literal["jpg", "png", "webp"] = Field(
        default="jpg",
        description="Output image format requested from the model",
    )
    generation_timeout: float | None = Field(
        default=None,
        description="Seconds to wait for the remote job before giving up",
        gt=0,
    )

    # Paths
    uploads_dir: Path = Field(
        default=Path("uploads"),
        description="Directory for temporary uploaded images",
    )
    outputs_dir: Path = Field(
        default=Path("outputs"),
        description="Directory to save generated images",
    )

    # Upload limits
    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Maximum size of each uploaded image in bytes",
        ge=1,
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    server_port: int = Field(
        default=3000,
        validation_alias=AliasChoices("server_port", "FACESWAP_SERVER_PORT", "PORT"),
        description="Server port",
        ge=1,
        le=65535,
    )
    public_base_url: str | None = Field(
        default=None,
        description="Public base URL for artifact links (e.g. https://swap.example.com)",
    )
    cors_allow_origins: list[str] = Field(
        default=["*"],
        description="Origins allowed to call the API from a browser",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level for the CLI entry point",
    )

    def __init__(self, **kwargs):
        """Initialize configuration and create required directories.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        self.outputs_dir.mkdir(parents=True, exist_ok=True)


# Global configuration instance, loaded from FACESWAP_* variables and .env.
config = FaceSwapConfig()
