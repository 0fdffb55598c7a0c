"""
Stream Fan-Out Splitter

Turns one byte stream into N independent readable streams, each yielding the
full content, without holding the whole input in memory.

Architecture:
    source --(read once, chunk by chunk)--> broadcaster thread
    broadcaster --(same chunk, blocking write)--> branch pipe 0..N-1
    consumer i <--(read)-- branch pipe i

Each branch pipe holds at most `max_chunks` chunks. The broadcaster writes a
chunk to every open branch before reading the next one, so it runs at the pace
of the slowest consumer and memory stays bounded by
N * max_chunks * chunk_size.

A consumer that closes its branch early is detached: the broadcaster skips it
from then on. When the source fails mid-read every branch is closed with a
StreamError, which readers get once they have drained the buffered data.
"""

import io
import threading
from collections import deque
from typing import BinaryIO, List, Optional

from loguru import logger

from ..core.exceptions import StreamError

DEFAULT_CHUNK_SIZE = 64 * 1024
DEFAULT_MAX_CHUNKS = 4


class _BranchPipe:
    """
    Bounded single-producer/single-consumer byte pipe.

    Thread-safe: the broadcaster writes, one consumer reads, both under _cond.
    """

    def __init__(self, max_chunks: int):
        self.max_chunks = max_chunks
        self._chunks: deque = deque()
        self._buffered = 0
        self._cond = threading.Condition()
        self._writer_closed = False
        self._reader_closed = False
        self._error: Optional[StreamError] = None

        # Stats
        self.high_water = 0  # Peak buffered bytes

    def write(self, chunk: bytes) -> bool:
        """
        Append a chunk, blocking while the pipe is full.

        Returns:
            False if the reader is gone (chunk dropped)
        """
        with self._cond:
            while len(self._chunks) >= self.max_chunks and not self._reader_closed:
                self._cond.wait()
            if self._reader_closed:
                return False

            self._chunks.append(memoryview(chunk))
            self._buffered += len(chunk)
            if self._buffered > self.high_water:
                self.high_water = self._buffered
            self._cond.notify_all()
            return True

    def close_writer(self, error: Optional[StreamError] = None) -> None:
        with self._cond:
            self._writer_closed = True
            self._error = error
            self._cond.notify_all()

    def read_into(self, buffer) -> int:
        """Copy buffered bytes into buffer; 0 means end of stream"""
        with self._cond:
            while not self._chunks and not self._writer_closed and not self._reader_closed:
                self._cond.wait()

            if not self._chunks:
                if self._error is not None and not self._reader_closed:
                    raise self._error
                return 0

            head = self._chunks[0]
            n = min(len(buffer), len(head))
            buffer[:n] = head[:n]
            if n < len(head):
                self._chunks[0] = head[n:]
            else:
                self._chunks.popleft()
            self._buffered -= n
            self._cond.notify_all()
            return n

    def close_reader(self) -> None:
        with self._cond:
            self._reader_closed = True
            self._chunks.clear()
            self._buffered = 0
            self._cond.notify_all()


class SplitStream(io.RawIOBase):
    """Read end of one fan-out branch. Readable, not seekable."""

    def __init__(self, pipe: _BranchPipe, index: int, name: str = ""):
        super().__init__()
        self._pipe = pipe
        self.index = index
        self.name = name or f"branch-{index}"

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed split stream")
        with memoryview(buffer) as view:
            return self._pipe.read_into(view.cast("B"))

    def close(self) -> None:
        if not self.closed:
            self._pipe.close_reader()
        super().close()

    @property
    def high_water(self) -> int:
        """Peak number of bytes buffered for this branch"""
        return self._pipe.high_water

    def __repr__(self) -> str:
        return f"SplitStream({self.name}, closed={self.closed})"


class Splitter:
    """
    Broadcasts one source stream to N branches.

    Usage:
        splitter = Splitter(open("sample.exe", "rb"), 3)
        streams = splitter.start()
        # hand each stream to its own consumer thread
        splitter.join()
    """

    def __init__(
        self,
        source: BinaryIO,
        n: int,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_chunks: int = DEFAULT_MAX_CHUNKS,
        name: str = "",
    ):
        if n < 0:
            raise ValueError(f"branch count must be >= 0, got {n}")
        if chunk_size <= 0 or max_chunks <= 0:
            raise ValueError("chunk_size and max_chunks must be positive")

        self.source = source
        self.n = n
        self.chunk_size = chunk_size
        self.max_chunks = max_chunks
        self.name = name or getattr(source, "name", "") or "stream"

        self._pipes = [_BranchPipe(max_chunks) for _ in range(n)]
        self._thread: Optional[threading.Thread] = None
        self._done = threading.Event()

        self.bytes_read = 0
        self.error: Optional[StreamError] = None

    def start(self) -> List[SplitStream]:
        """Start the broadcaster and return the N branch streams"""
        if self._thread is not None:
            raise RuntimeError("splitter already started")

        streams = [SplitStream(pipe, i, name=f"{self.name}#{i}") for i, pipe in enumerate(self._pipes)]

        if self.n == 0:
            # Nobody to feed, leave the source untouched
            self._done.set()
            return streams

        self._thread = threading.Thread(
            target=self._broadcast,
            name="cortex-splitter",
            daemon=True,
        )
        self._thread.start()
        return streams

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the broadcaster to finish; True if it did"""
        return self._done.wait(timeout)

    @property
    def high_water(self) -> int:
        """Peak bytes buffered in any single branch"""
        return max((p.high_water for p in self._pipes), default=0)

    def _broadcast(self) -> None:
        try:
            while True:
                chunk = self.source.read(self.chunk_size)
                if not chunk:
                    break
                chunk = bytes(chunk)
                self.bytes_read += len(chunk)

                delivered = False
                for pipe in self._pipes:
                    if pipe.write(chunk):
                        delivered = True

                if not delivered:
                    logger.debug(f"All branches of {self.name} closed, stop reading after {self.bytes_read} bytes")
                    break
        except Exception as e:
            logger.error(f"Upstream read of {self.name} failed after {self.bytes_read} bytes: {e}")
            self.error = StreamError(
                f"upstream read of {self.name} failed after {self.bytes_read} bytes: {e}",
                cause=e,
            )
        finally:
            for pipe in self._pipes:
                pipe.close_writer(self.error)
            self._done.set()

        if self.error is None:
            logger.debug(f"Broadcast {self.bytes_read} bytes of {self.name} to {self.n} branches")


def split(
    source: BinaryIO,
    n: int,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    max_chunks: int = DEFAULT_MAX_CHUNKS,
) -> List[SplitStream]:
    """
    Fan a byte stream out to n independent streams.

    The source is read once by a background thread and is never closed.
    Every returned stream must be read to the end or closed, otherwise the
    broadcaster stays blocked on it.
    """
    return Splitter(source, n, chunk_size=chunk_size, max_chunks=max_chunks).start()
