"""Tensor and buffer types shared by the pipeline stages.

Buffers come from a context's BufferAllocator and must be released before
the next file starts. Every buffer-owning type is a context manager, so a
``with`` block releases it on every exit path:

    with decode(path, ctx) as image:
        with invoker.infer(ctx, image, in_desc, out_desc, n) as scores:
            report(sink, str(path), scores)
"""

from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from ..constants import IMAGE_CHANNELS
from ..exceptions import ResourceError


class Layout(str, Enum):
    """Memory layout of a 4-D tensor."""

    NHWC = "nhwc"  # channel-interleaved (RGB, RGB, ...)
    NCHW = "nchw"  # channel-major


class DataType(str, Enum):
    """Element type of a tensor."""

    FLOAT32 = "float32"

    @property
    def numpy_dtype(self) -> np.dtype:
        return np.dtype(self.value)


class DeviceBuffer:
    """One allocation owned by a BufferAllocator.

    The array is host-visible managed memory; backends move it to their
    device if they need to.
    """

    def __init__(self, allocator: "BufferAllocator", array: np.ndarray):
        self._allocator = allocator
        self._array = array
        self._released = False

    @property
    def array(self) -> np.ndarray:
        if self._released:
            raise ResourceError("Buffer used after release")
        return self._array

    @property
    def nbytes(self) -> int:
        return int(self._array.nbytes)

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Return the buffer to its allocator. Safe to call more than once."""
        if self._released:
            return
        self._allocator.free(self)
        self._released = True

    def __enter__(self) -> "DeviceBuffer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class BufferAllocator:
    """Tracks every buffer handed out for one context.

    Counts are exposed so a run can prove it released everything it
    allocated and never held more than one file's working set.
    """

    def __init__(self) -> None:
        self.allocations = 0
        self.releases = 0
        self.peak_bytes = 0
        self._live: dict[int, DeviceBuffer] = {}

    @property
    def live_count(self) -> int:
        return len(self._live)

    @property
    def live_bytes(self) -> int:
        return sum(b.nbytes for b in self._live.values())

    def allocate(self, shape: tuple[int, ...], dtype: np.dtype | str = np.float32) -> DeviceBuffer:
        """Allocate an uninitialized buffer.

        Raises:
            MemoryError: If the buffer cannot be allocated
        """
        try:
            array = np.empty(shape, dtype=dtype)
        except ValueError as e:
            # numpy reports impossible sizes as ValueError
            raise MemoryError(f"Cannot allocate buffer of shape {shape}: {e}") from e

        buffer = DeviceBuffer(self, array)
        self._live[id(buffer)] = buffer
        self.allocations += 1
        self.peak_bytes = max(self.peak_bytes, self.live_bytes)
        return buffer

    def free(self, buffer: DeviceBuffer) -> None:
        """Release a buffer.

        Raises:
            ResourceError: If the buffer isn't live in this allocator
        """
        if self._live.pop(id(buffer), None) is None:
            raise ResourceError("Buffer is not owned by this allocator or was already freed")
        self.releases += 1


@dataclass
class ImageTensor:
    """Normalized RGB samples of one decoded image.

    ``data`` has shape (height, width, 3), float32 in [0, 1].
    """

    width: int
    height: int
    buffer: DeviceBuffer
    channels: int = IMAGE_CHANNELS
    layout: Layout = Layout.NHWC

    @property
    def data(self) -> np.ndarray:
        return self.buffer.array

    def release(self) -> None:
        self.buffer.release()

    def __enter__(self) -> "ImageTensor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


@dataclass
class ScoreTensor:
    """Per-class scores produced by one inference call."""

    class_count: int
    buffer: DeviceBuffer
    inference_time_ms: float = field(default=0.0)

    @property
    def scores(self) -> np.ndarray:
        return self.buffer.array

    def release(self) -> None:
        self.buffer.release()

    def __enter__(self) -> "ScoreTensor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
