"""Result materialization: turning model output handles into files on disk.

The remote job runner returns an ordered sequence of output handles.  Only the
first one is used.  A handle is drained chunk by chunk, in arrival order, and
each chunk is written straight into a new file under the public output
directory so large results are never held in memory as a whole.

Supported output handles
------------------------
- async byte iterables (Replicate ``FileOutput`` objects)
- sync byte iterables (iterated in the threadpool)
- file-like objects exposing ``read()`` (read in the threadpool)
- raw ``bytes``
- ``http(s)`` URL strings, fetched with a streaming ``httpx`` request

Artifact naming
---------------
Files are named ``result_<ms-timestamp>_<random-hex>.<ext>``.  The timestamp
keeps names roughly chronological; the random suffix keeps two requests
finishing in the same millisecond from colliding.  Files are opened in
exclusive-create mode, so an unexpected collision fails loudly instead of
overwriting another request's result.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
from starlette.concurrency import iterate_in_threadpool, run_in_threadpool

from faceswap.core.errors import EmptyOutputError, PersistenceError, StreamDrainError

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class OutputArtifact:
    """A generated image persisted under the output directory.

    Attributes:
        path: Location of the file on disk.
        filename: Bare file name, as exposed under ``/outputs``.
        size: Number of bytes written.
    """

    path: Path
    filename: str
    size: int


def make_artifact_name(extension: str = "jpg") -> str:
    """Return a fresh artifact file name."""
    timestamp_ms = int(time.time() * 1000)
    return f"result_{timestamp_ms}_{uuid.uuid4().hex[:8]}.{extension}"


def select_output(output: Any) -> Any:
    """Return the first output handle of a job result.

    Args:
        output: Raw job runner output.

    Returns:
        The first handle.  Additional handles are ignored.

    Raises:
        EmptyOutputError: If the output is not a list/tuple, is empty, or its
            first entry is ``None``.
    """
    if not isinstance(output, (list, tuple)) or len(output) == 0:
        raise EmptyOutputError()
    if output[0] is None:
        raise EmptyOutputError()
    if len(output) > 1:
        logger.debug(f"Model returned {len(output)} outputs, using the first")
    return output[0]


async def _stream_url(url: str) -> AsyncIterator[bytes]:
    async with httpx.AsyncClient(follow_redirects=True) as client:
        async with client.stream("GET", url) as response:
            response.raise_for_status()
            async for chunk in response.aiter_bytes():
                yield chunk


def _as_bytes(chunk: Any) -> bytes:
    if not isinstance(chunk, (bytes, bytearray, memoryview)):
        raise StreamDrainError(f"Model output stream yielded {type(chunk).__name__}, expected bytes")
    return bytes(chunk)


async def iter_chunks(handle: Any) -> AsyncIterator[bytes]:
    """Yield the byte chunks of an output handle in arrival order.

    Empty chunks are skipped.  Every other chunk must be bytes-like and is
    passed through unchanged.  Blocking handles are read in the threadpool so
    the event loop keeps serving other requests.

    Raises:
        StreamDrainError: If the handle type is unsupported, a chunk is not
            bytes-like, or reading fails.
    """
    if isinstance(handle, (bytes, bytearray, memoryview)):
        if handle:
            yield bytes(handle)
        return

    try:
        if isinstance(handle, str):
            if not handle.startswith(("http://", "https://")):
                raise StreamDrainError("Model returned an unsupported output")
            source = _stream_url(handle)
        elif hasattr(handle, "__aiter__"):
            source = handle
        elif hasattr(handle, "__iter__"):
            source = iterate_in_threadpool(handle)
        elif hasattr(handle, "read"):
            while True:
                chunk = _as_bytes(await run_in_threadpool(handle.read, READ_CHUNK_SIZE))
                if not chunk:
                    break
                yield chunk
            return
        else:
            raise StreamDrainError(f"Unsupported output type: {type(handle).__name__}")

        async for chunk in source:
            chunk = _as_bytes(chunk)
            if chunk:
                yield chunk
    except StreamDrainError:
        raise
    except Exception as e:
        logger.error(f"Failed to read model output stream: {e}")
        raise StreamDrainError(str(e) or None) from e


async def drain_stream(handle: Any) -> bytes:
    """Read an output handle to the end and return its bytes."""
    chunks = [chunk async for chunk in iter_chunks(handle)]
    return b"".join(chunks)


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove partial artifact {path}: {e}")


async def write_artifact(handle: Any, outputs_dir: Path, extension: str = "jpg") -> OutputArtifact:
    """Stream an output handle into a new file under ``outputs_dir``.

    The directory is created if missing.  On any failure, cancellation
    included, the partially written file is removed.

    Args:
        handle: Output handle to drain.
        outputs_dir: Public output directory.
        extension: File extension for the artifact.

    Returns:
        The persisted :class:`OutputArtifact`.

    Raises:
        EmptyOutputError: If the stream yields no bytes.
        StreamDrainError: If reading the stream fails.
        PersistenceError: If writing the file fails.
    """
    filename = make_artifact_name(extension)
    path = outputs_dir / filename
    size = 0

    try:
        outputs_dir.mkdir(parents=True, exist_ok=True)
        handle_out = open(path, "xb")
    except OSError as e:
        logger.error(f"Failed to create artifact {path}: {e}")
        raise PersistenceError() from e

    try:
        with handle_out:
            async for chunk in iter_chunks(handle):
                handle_out.write(chunk)
                size += len(chunk)
    except StreamDrainError:
        _discard(path)
        raise
    except OSError as e:
        logger.error(f"Failed to write artifact {path}: {e}")
        _discard(path)
        raise PersistenceError() from e
    except BaseException:
        _discard(path)
        raise

    if size == 0:
        _discard(path)
        raise EmptyOutputError()

    logger.info(f"Saved artifact {filename} ({size} bytes)")
    return OutputArtifact(path=path, filename=filename, size=size)
