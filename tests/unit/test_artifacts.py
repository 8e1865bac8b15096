"""Unit tests for faceswap.core.artifacts — output draining and persistence."""

from __future__ import annotations

import asyncio
import re
import threading
from io import BytesIO

import pytest

from conftest import AsyncChunkStream
from faceswap.core import artifacts
from faceswap.core.artifacts import (
    drain_stream,
    make_artifact_name,
    select_output,
    write_artifact,
)
from faceswap.core.errors import EmptyOutputError, PersistenceError, StreamDrainError


class TestSelectOutput:
    """Tests for select_output function."""

    def test_returns_first(self):
        assert select_output(["a", "b"]) == "a"

    def test_tuple_accepted(self):
        assert select_output(("a",)) == "a"

    @pytest.mark.parametrize("output", [[], (), None, "not-a-list", b"bytes", {"k": "v"}, [None]])
    def test_unusable_output(self, output):
        with pytest.raises(EmptyOutputError, match="Model returned no output"):
            select_output(output)


class TestMakeArtifactName:
    """Tests for make_artifact_name function."""

    def test_format(self):
        assert re.fullmatch(r"result_\d{13}_[0-9a-f]{8}\.jpg", make_artifact_name())

    def test_extension(self):
        assert make_artifact_name("png").endswith(".png")

    def test_unique_within_same_millisecond(self, monkeypatch):
        monkeypatch.setattr(artifacts.time, "time", lambda: 1700000000.123)
        names = {make_artifact_name() for _ in range(100)}
        assert len(names) == 100
        assert all(name.startswith("result_1700000000123_") for name in names)


class TestDrainStream:
    """Tests for drain_stream function."""

    def test_async_chunks_in_order(self):
        stream = AsyncChunkStream([b"\xff\xd8", b"\xff\xd9"])
        assert asyncio.run(drain_stream(stream)) == b"\xff\xd8\xff\xd9"

    @pytest.mark.parametrize("boundaries", [[1], [3, 7], [1, 2, 3, 4, 5], list(range(1, 32))])
    def test_chunking_invariant(self, boundaries):
        """Any split of the payload drains back to the same bytes."""
        payload = bytes(range(32))
        edges = [0, *boundaries, len(payload)]
        chunks = [payload[a:b] for a, b in zip(edges, edges[1:]) if payload[a:b]]
        assert asyncio.run(drain_stream(AsyncChunkStream(chunks))) == payload

    def test_sync_iterable(self):
        assert asyncio.run(drain_stream(iter([b"ab", b"cd"]))) == b"abcd"

    def test_bytearray_and_memoryview_chunks(self):
        chunks = [bytearray(b"\xff\xd8"), memoryview(b"\xff\xd9")]
        assert asyncio.run(drain_stream(chunks)) == b"\xff\xd8\xff\xd9"

    def test_iterating_bytes_object_rejected(self):
        """Iterating a bytes object yields ints, which are not chunks."""
        with pytest.raises(StreamDrainError, match="yielded int"):
            asyncio.run(drain_stream(iter(b"\xff\xd8\xff\xd9")))

    @pytest.mark.parametrize("chunks", [[3, 2], [[0xFF, 0xD8]], ["text"], [0, 0]])
    def test_non_bytes_chunks_rejected(self, chunks):
        with pytest.raises(StreamDrainError, match="expected bytes"):
            asyncio.run(drain_stream(AsyncChunkStream(chunks)))

    def test_read_returning_text_rejected(self):
        class TextReader:
            def read(self, size=-1):
                return "not bytes"

        with pytest.raises(StreamDrainError, match="yielded str"):
            asyncio.run(drain_stream(TextReader()))

    def test_blocking_handles_read_off_the_event_loop(self):
        """Sync iterables and read() handles run in worker threads."""
        loop_thread = threading.get_ident()
        seen_threads = []

        def blocking_chunks():
            seen_threads.append(threading.get_ident())
            yield b"ab"

        class Reader:
            def __init__(self):
                self._buffer = BytesIO(b"cd")

            def read(self, size=-1):
                seen_threads.append(threading.get_ident())
                return self._buffer.read(size)

        assert asyncio.run(drain_stream(blocking_chunks())) == b"ab"
        assert asyncio.run(drain_stream(Reader())) == b"cd"
        assert seen_threads
        assert loop_thread not in seen_threads

    def test_file_like(self):
        class Reader:
            def __init__(self, data):
                self._buffer = BytesIO(data)

            def read(self, size=-1):
                return self._buffer.read(size)

        data = b"x" * (artifacts.READ_CHUNK_SIZE * 2 + 5)
        assert asyncio.run(drain_stream(Reader(data))) == data

    def test_raw_bytes(self):
        assert asyncio.run(drain_stream(b"\x01\x02")) == b"\x01\x02"

    def test_empty_chunks_skipped(self):
        stream = AsyncChunkStream([b"", b"a", b"", b"b"])
        assert asyncio.run(drain_stream(stream)) == b"ab"

    def test_url_output_fetched(self, monkeypatch):
        async def fake_stream_url(url):
            assert url == "https://replicate.delivery/out.jpg"
            yield b"\xff\xd8"
            yield b"\xff\xd9"

        monkeypatch.setattr(artifacts, "_stream_url", fake_stream_url)
        assert asyncio.run(drain_stream("https://replicate.delivery/out.jpg")) == b"\xff\xd8\xff\xd9"

    def test_non_url_string_rejected(self):
        with pytest.raises(StreamDrainError):
            asyncio.run(drain_stream("not a url"))

    def test_unsupported_type(self):
        with pytest.raises(StreamDrainError, match="Unsupported output type"):
            asyncio.run(drain_stream(42))

    def test_read_failure_wrapped(self):
        stream = AsyncChunkStream([b"a"], error=ConnectionError("socket closed"))
        with pytest.raises(StreamDrainError, match="socket closed"):
            asyncio.run(drain_stream(stream))


class TestWriteArtifact:
    """Tests for write_artifact function."""

    def test_writes_exact_bytes(self, temp_dir):
        artifact = asyncio.run(write_artifact(AsyncChunkStream([b"\xff\xd8", b"\xff\xd9"]), temp_dir))

        assert artifact.path == temp_dir / artifact.filename
        assert artifact.size == 4
        assert artifact.path.read_bytes() == b"\xff\xd8\xff\xd9"

    def test_creates_output_dir(self, temp_dir):
        outputs_dir = temp_dir / "nested" / "outputs"
        artifact = asyncio.run(write_artifact(AsyncChunkStream([b"a"]), outputs_dir))
        assert outputs_dir.is_dir()
        assert artifact.path.exists()

    def test_extension(self, temp_dir):
        artifact = asyncio.run(write_artifact(AsyncChunkStream([b"a"]), temp_dir, "webp"))
        assert artifact.filename.endswith(".webp")

    def test_empty_stream_raises_and_removes_file(self, temp_dir):
        with pytest.raises(EmptyOutputError):
            asyncio.run(write_artifact(AsyncChunkStream([]), temp_dir))
        assert list(temp_dir.iterdir()) == []

    def test_stream_error_removes_partial_file(self, temp_dir):
        stream = AsyncChunkStream([b"partial"], error=RuntimeError("cut off"))
        with pytest.raises(StreamDrainError, match="cut off"):
            asyncio.run(write_artifact(stream, temp_dir))
        assert list(temp_dir.iterdir()) == []

    def test_write_error_becomes_persistence_error(self, temp_dir):
        """An unusable output directory surfaces as a PersistenceError."""
        blocker = temp_dir / "outputs"
        blocker.write_text("a file where the directory should be")

        with pytest.raises(PersistenceError, match="Failed to save generated image"):
            asyncio.run(write_artifact(AsyncChunkStream([b"a"]), blocker))

    def test_non_bytes_chunk_removes_partial_file(self, temp_dir):
        with pytest.raises(StreamDrainError):
            asyncio.run(write_artifact(AsyncChunkStream([b"\xff\xd8", 3, 2]), temp_dir))
        assert list(temp_dir.iterdir()) == []

    def test_cancellation_removes_partial_file(self, temp_dir):
        stream = AsyncChunkStream([b"partial"], error=asyncio.CancelledError())
        with pytest.raises(asyncio.CancelledError):
            asyncio.run(write_artifact(stream, temp_dir))
        assert list(temp_dir.iterdir()) == []

    def test_name_collision_keeps_existing_file(self, monkeypatch, temp_dir):
        """A clashing name fails without touching the file already there."""
        existing = temp_dir / "result_1_deadbeef.jpg"
        existing.write_bytes(b"earlier result")
        monkeypatch.setattr(artifacts, "make_artifact_name", lambda extension="jpg": existing.name)

        with pytest.raises(PersistenceError):
            asyncio.run(write_artifact(AsyncChunkStream([b"a"]), temp_dir))
        assert existing.read_bytes() == b"earlier result"
