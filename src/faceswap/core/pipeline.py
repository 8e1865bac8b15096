"""Swap pipeline: encode uploads, run the remote job, persist the result.

:class:`SwapPipeline` ties the encoder, the job runner, and artifact
materialization together.  It is split into two steps so the API layer can
delete the temporary uploads between them:

1. :meth:`SwapPipeline.invoke` reads and encodes both images, submits the
   generation request, and awaits the job runner.  This is the long suspension
   point of a request.
2. :meth:`SwapPipeline.materialize` validates the output and streams the first
   output handle into the output directory.

:meth:`SwapPipeline.swap` runs both steps for callers that do not need the
split.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from faceswap.core.artifacts import OutputArtifact, select_output, write_artifact
from faceswap.core.config import FaceSwapConfig
from faceswap.core.encoder import encode_data_uri
from faceswap.core.errors import RemoteInvocationError, SwapError
from faceswap.core.job_runner import GenerationRequest, JobRunner
from faceswap.core.uploads import UploadedImage

logger = logging.getLogger(__name__)

SWAP_PROMPT = """
Create one realistic image using the face from the first image and the body from the second image.
Add and clearly show the face on the body.
Make the body proportions natural and correctly scaled to the face.
Ensure the final image looks realistic, well aligned, and seamless.
"""


class SwapPipeline:
    """Runs one face/body composite against a job runner.

    Attributes:
        runner: The remote job runner.
        config: Application configuration (output directory, format, timeout).
    """

    def __init__(self, runner: JobRunner, config: FaceSwapConfig) -> None:
        self.runner = runner
        self.config = config

    def build_request(self, face: UploadedImage, body: UploadedImage) -> GenerationRequest:
        """Encode both uploads into a generation request (face first)."""
        return GenerationRequest(
            prompt=SWAP_PROMPT,
            images=(encode_data_uri(face.path), encode_data_uri(body.path)),
            output_format=self.config.output_format,
        )

    async def invoke(self, face: UploadedImage, body: UploadedImage) -> Any:
        """Submit the composite job and wait for it to finish.

        Args:
            face: Uploaded face image.
            body: Uploaded body image.

        Returns:
            The raw job runner output.

        Raises:
            RemoteInvocationError: If the job runner fails or times out.
            OSError: If an upload cannot be read.
        """
        request = self.build_request(face, body)
        timeout = self.config.generation_timeout

        try:
            if timeout is None:
                return await self.runner.run(request)
            try:
                return await asyncio.wait_for(self.runner.run(request), timeout)
            except asyncio.TimeoutError as e:
                logger.error(f"Generation did not finish within {timeout}s")
                raise RemoteInvocationError("Image generation timed out") from e
        except SwapError:
            raise
        except Exception as e:
            logger.error(f"Job runner failed: {e}")
            raise RemoteInvocationError(str(e) or None) from e

    async def materialize(self, output: Any) -> OutputArtifact:
        """Persist the first output handle of a finished job.

        Raises:
            EmptyOutputError: If the job produced no usable output.
            StreamDrainError: If the output stream cannot be read.
            PersistenceError: If the file cannot be written.
        """
        handle = select_output(output)
        return await write_artifact(handle, self.config.outputs_dir, self.config.output_format)

    async def swap(self, face: UploadedImage, body: UploadedImage) -> OutputArtifact:
        """Run :meth:`invoke` then :meth:`materialize`."""
        output = await self.invoke(face, body)
        return await self.materialize(output)
