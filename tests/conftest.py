"""Shared pytest fixtures for Face Swap tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from faceswap.api.main import create_app
from faceswap.core.config import FaceSwapConfig
from faceswap.core.job_runner import GenerationRequest

# JPEG start-of-image / end-of-image markers, delivered as two chunks.
JPEG_CHUNKS = [b"\xff\xd8", b"\xff\xd9"]


class AsyncChunkStream:
    """Async byte stream standing in for a model output handle.

    Args:
        chunks: Chunks to yield, in order.
        error: Optional exception raised after all chunks were yielded.
    """

    def __init__(self, chunks: list[bytes], error: Exception | None = None):
        self.chunks = chunks
        self.error = error

    async def _generate(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    def __aiter__(self):
        return self._generate()


class StubJobRunner:
    """Job runner that records requests and returns a canned output.

    Attributes:
        output: Value returned from :meth:`run`.
        error: Exception raised from :meth:`run` instead, if set.
        requests: Every request received, in order.
    """

    def __init__(self, output=None, error: Exception | None = None):
        self.output = output
        self.error = error
        self.requests: list[GenerationRequest] = []

    async def run(self, request: GenerationRequest):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.output


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> FaceSwapConfig:
    """Create a test configuration with temporary directories.

    Args:
        temp_dir: Temporary directory from fixture

    Returns:
        FaceSwapConfig instance for testing
    """
    return FaceSwapConfig(
        _env_file=None,
        uploads_dir=str(temp_dir / "uploads"),
        outputs_dir=str(temp_dir / "outputs"),
        replicate_api_token=None,
        public_base_url=None,
        generation_timeout=None,
        max_upload_bytes=1024 * 1024,
    )


@pytest.fixture
def stub_runner() -> StubJobRunner:
    """Job runner returning a single two-chunk JPEG stream."""
    return StubJobRunner(output=[AsyncChunkStream(JPEG_CHUNKS)])


@pytest.fixture
def test_client(test_config: FaceSwapConfig, stub_runner: StubJobRunner) -> Generator[TestClient, None, None]:
    """TestClient for an app wired to the stub job runner."""
    app = create_app(test_config, job_runner=stub_runner)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def swap_files() -> dict:
    """Multipart payload with a 3-byte face and a 2-byte body image."""
    return {
        "face": ("face.jpg", b"\x01\x02\x03", "image/jpeg"),
        "body": ("body.jpg", b"\x0a\x0b", "image/jpeg"),
    }
