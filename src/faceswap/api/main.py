"""Face Swap Service — FastAPI Application.

This module defines the FastAPI application factory, the swap route, and the
``main()`` CLI function that launches the uvicorn server.

Architecture
------------
- **Configuration** comes from :class:`~faceswap.core.config.FaceSwapConfig`
  (``FACESWAP_*`` environment variables, ``PORT``, ``REPLICATE_API_TOKEN``).
- **Image generation** is delegated to a
  :class:`~faceswap.core.job_runner.JobRunner` stored on ``app.state``.  The
  production :class:`~faceswap.core.job_runner.ReplicateJobRunner` is built
  by :func:`get_job_runner` on first use unless a runner was passed to
  :func:`create_app`.
- **Temporary uploads** are owned by
  :func:`~faceswap.core.uploads.ingest_uploads` and removed on every exit
  path of a request.
- **Generated images** are written to ``outputs_dir`` and served by
  ``StaticFiles`` at ``/outputs``.

Endpoints
---------
========  ============================  ====================================
Method    Path                          Purpose
========  ============================  ====================================
POST      ``/swap``                     Composite a face onto a body
GET       ``/outputs/{filename}``       Download a generated image
========  ============================  ====================================

Error responses always have the shape ``{"error": "<message>"}``.

Usage
-----
CLI (installed entry point)::

    faceswap

Direct invocation::

    python -m faceswap.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from faceswap import __version__
from faceswap.api.models import ErrorResponse, SwapResponse
from faceswap.core.config import FaceSwapConfig, config
from faceswap.core.errors import SwapError, ValidationError
from faceswap.core.job_runner import JobRunner, ReplicateJobRunner
from faceswap.core.pipeline import SwapPipeline
from faceswap.core.uploads import ingest_uploads

logger = logging.getLogger(__name__)

OUTPUTS_ROUTE = "/outputs"

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing or invalid upload"},
    413: {"model": ErrorResponse, "description": "Upload too large"},
    415: {"model": ErrorResponse, "description": "Upload is not an image"},
    500: {"model": ErrorResponse, "description": "Generation failed"},
}


# ---------------------------------------------------------------------------
# Dependencies.
# ---------------------------------------------------------------------------


def get_config(request: Request) -> FaceSwapConfig:
    """Return the configuration the application was created with."""
    return request.app.state.config


def get_job_runner(request: Request) -> JobRunner:
    """Return the application's job runner, building the default one if needed."""
    if request.app.state.job_runner is None:
        request.app.state.job_runner = ReplicateJobRunner(request.app.state.config)
    return request.app.state.job_runner


def get_pipeline(
    runner: JobRunner = Depends(get_job_runner),
    app_config: FaceSwapConfig = Depends(get_config),
) -> SwapPipeline:
    return SwapPipeline(runner, app_config)


def build_image_url(request: Request, app_config: FaceSwapConfig, filename: str) -> str:
    """Build the public URL of a generated image.

    Uses ``public_base_url`` when configured (e.g. behind a reverse proxy),
    otherwise the scheme and host of the incoming request.
    """
    if app_config.public_base_url:
        return f"{app_config.public_base_url.rstrip('/')}{OUTPUTS_ROUTE}/{filename}"
    return str(request.url_for("outputs", path=filename))


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


async def swap(
    request: Request,
    face: list[UploadFile] | None = File(default=None, description="Image providing the face."),
    body: list[UploadFile] | None = File(default=None, description="Image providing the body."),
    app_config: FaceSwapConfig = Depends(get_config),
    pipeline: SwapPipeline = Depends(get_pipeline),
) -> SwapResponse:
    """Composite the face from one image onto the body from another.

    This endpoint:

    1. Validates that exactly one ``face`` and one ``body`` file were sent.
    2. Saves both uploads to the temporary upload directory.
    3. Encodes them as data URIs and runs the remote generation job.
    4. Deletes the temporary uploads.
    5. Streams the first model output into ``outputs_dir``.

    Args:
        request: The incoming request (used to build the result URL).
        face: Uploaded face image.
        body: Uploaded body image.
        app_config: Application configuration.
        pipeline: Swap pipeline bound to the application's job runner.

    Returns:
        :class:`SwapResponse` with the URL of the generated image.

    Raises:
        SwapError: Any failure, rendered as ``{"error": ...}`` by the
            application's exception handler.
    """
    try:
        async with ingest_uploads(
            face, body, app_config.uploads_dir, app_config.max_upload_bytes
        ) as (face_image, body_image):
            logger.info(
                f"Swap request: face={face_image.size} bytes, body={body_image.size} bytes"
            )
            output = await pipeline.invoke(face_image, body_image)

        artifact = await pipeline.materialize(output)
    except SwapError:
        raise
    except OSError as e:
        # Filesystem messages carry paths, so the caller gets the generic message.
        logger.exception(f"Filesystem error while handling swap: {e}")
        raise SwapError() from e
    except Exception as e:
        logger.exception(f"Unexpected error while handling swap: {e}")
        raise SwapError(str(e) or None) from e

    return SwapResponse(image=build_image_url(request, app_config, artifact.filename))


# ---------------------------------------------------------------------------
# Exception handlers.
# ---------------------------------------------------------------------------


async def swap_error_handler(request: Request, exc: SwapError) -> JSONResponse:
    """Render a :class:`SwapError` as ``{"error": message}``."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Map malformed form submissions to the upload validation error."""
    logger.warning(f"{request.method} {request.url.path} malformed: {exc.errors()}")
    return JSONResponse(
        status_code=ValidationError.status_code,
        content={"error": ValidationError.default_message},
    )


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


def create_app(
    app_config: FaceSwapConfig | None = None,
    job_runner: JobRunner | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        app_config: Configuration to use.  Defaults to the global
            :data:`~faceswap.core.config.config`.
        job_runner: Job runner to use.  When omitted a
            :class:`ReplicateJobRunner` is built on the first request.

    Returns:
        The configured application.
    """
    app_config = app_config or config

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            f"Face swap service ready (uploads={app_config.uploads_dir}, "
            f"outputs={app_config.outputs_dir})"
        )
        yield

    app = FastAPI(
        title="Face Swap Service",
        description="Composite a face onto a body with a remote image-editing model.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = app_config
    app.state.job_runner = job_runner

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_config.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(SwapError, swap_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.add_api_route(
        "/swap",
        swap,
        methods=["POST"],
        response_model=SwapResponse,
        responses=_ERROR_RESPONSES,
    )

    # Generated images are served directly from the output directory.
    app.mount(
        OUTPUTS_ROUTE,
        StaticFiles(directory=str(app_config.outputs_dir)),
        name="outputs",
    )

    return app


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~faceswap.core.config.config` (``PORT``
    or ``FACESWAP_SERVER_PORT``, ``FACESWAP_SERVER_HOST``).  Defaults to
    ``0.0.0.0:3000``.

    This function is registered as the ``faceswap`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "faceswap.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
