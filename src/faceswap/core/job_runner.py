"""Remote job runner abstraction.

The compositing itself happens on a remote generative model.  The rest of the
application only depends on the small :class:`JobRunner` protocol: submit a
:class:`GenerationRequest`, await completion, and receive the model's output
(normally a list of readable byte streams).

:class:`ReplicateJobRunner` is the production implementation backed by the
official ``replicate`` client.  It is constructed once in the application
lifespan and stored on ``app.state``, so tests can inject a stub runner
instead without touching process-wide state.

Usage
-----
::

    from faceswap.core.config import config
    from faceswap.core.job_runner import GenerationRequest, ReplicateJobRunner

    runner = ReplicateJobRunner(config)
    output = await runner.run(
        GenerationRequest(prompt="...", images=(face_uri, body_uri))
    )
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import replicate

from faceswap.core.config import FaceSwapConfig
from faceswap.core.errors import RemoteInvocationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationRequest:
    """Everything the remote model needs for one composite.

    Attributes:
        prompt: Instruction text sent to the model.
        images: Data URIs in model order (face first, body second).
        output_format: Image format the model should produce.
    """

    prompt: str
    images: tuple[str, ...]
    output_format: str = "jpg"


class JobRunner(Protocol):
    """Anything that can execute a :class:`GenerationRequest` remotely."""

    async def run(self, request: GenerationRequest) -> Any:
        """Run the job to completion and return the raw model output."""
        ...


class ReplicateJobRunner:
    """Job runner that executes requests on Replicate.

    Attributes:
        model_id: Replicate model reference (``owner/name[:version]``).
    """

    def __init__(self, config: FaceSwapConfig) -> None:
        self.model_id = config.model_id
        self._client: replicate.Client | None = None

        if config.replicate_api_token is not None:
            self._client = replicate.Client(
                api_token=config.replicate_api_token.get_secret_value()
            )
            logger.info(f"Replicate job runner configured for model: {self.model_id}")
        else:
            logger.warning(
                "REPLICATE_API_TOKEN is not set; swap requests will fail until it is configured"
            )

    def build_input(self, request: GenerationRequest) -> dict:
        """Translate a generation request into the model's input payload."""
        return {
            "image": list(request.images),
            "prompt": request.prompt,
            "output_format": request.output_format,
        }

    async def run(self, request: GenerationRequest) -> Any:
        """Submit the request and wait for the prediction to finish.

        Args:
            request: The generation request.

        Returns:
            The model output.  With file outputs enabled this is a list of
            ``FileOutput`` objects, each an async-iterable byte stream.

        Raises:
            RemoteInvocationError: If no token is configured or the
                prediction fails.
        """
        if self._client is None:
            raise RemoteInvocationError("REPLICATE_API_TOKEN is not configured")

        logger.info(f"Submitting prediction to {self.model_id} with {len(request.images)} images")
        try:
            output = await self._client.async_run(
                self.model_id,
                input=self.build_input(request),
                use_file_output=True,
            )
        except Exception as e:
            logger.error(f"Replicate prediction failed: {e}")
            raise RemoteInvocationError(str(e) or None) from e

        logger.info(f"Prediction on {self.model_id} completed")
        return output
