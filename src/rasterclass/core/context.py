"""Accelerator context: the device handle and inference runtime for a run.

One context is acquired per batch and passed explicitly to every stage
that allocates or describes tensors. Releasing it is idempotent and is
refused while any buffer it handed out is still live.
"""

import logging
from dataclasses import dataclass
from typing import Any

import numpy as np

from ..constants import DEFAULT_DEVICE_INDEX
from ..exceptions import DeviceUnavailable, ResourceError
from .hardware import DeviceInfo, cpu_device, detect_hardware
from .tensors import BufferAllocator, DeviceBuffer

logger = logging.getLogger(__name__)


@dataclass
class RuntimeHandle:
    """Opaque runtime state backends run against.

    Attributes:
        kind: "cuda", "mps" or "cpu"
        device: torch.device when torch is installed, else None
        cudnn: Whether cuDNN is available on a CUDA device
    """

    kind: str
    device: Any = None
    cudnn: bool = False


class AcceleratorContext:
    """Owns the device and runtime handle for one run.

    Example:
        >>> with acquire(require_accelerator=False) as ctx:
        ...     buf = ctx.allocate((4,))
        ...     buf.release()
    """

    def __init__(self, device: DeviceInfo, runtime: RuntimeHandle, device_count: int):
        self._device = device
        self._runtime = runtime
        self._device_count = device_count
        self._allocator = BufferAllocator()
        self._released = False

    @property
    def device(self) -> DeviceInfo:
        return self._device

    @property
    def device_count(self) -> int:
        return self._device_count

    @property
    def runtime(self) -> RuntimeHandle:
        self.ensure_live()
        return self._runtime

    @property
    def allocator(self) -> BufferAllocator:
        return self._allocator

    @property
    def is_live(self) -> bool:
        return not self._released

    def ensure_live(self) -> None:
        """Raise DeviceUnavailable if the context has been released."""
        if self._released:
            raise DeviceUnavailable("Accelerator context has been released")

    def allocate(self, shape: tuple[int, ...], dtype: np.dtype | str = np.float32) -> DeviceBuffer:
        """Allocate a tracked buffer on this context.

        Raises:
            DeviceUnavailable: If the context has been released
            MemoryError: If the buffer cannot be allocated
        """
        self.ensure_live()
        return self._allocator.allocate(shape, dtype)

    def release(self) -> None:
        """Tear down the runtime handle.

        Raises:
            ResourceError: If buffers allocated from this context are still live
        """
        if self._released:
            return

        if self._allocator.live_count:
            raise ResourceError(
                f"Cannot release context: {self._allocator.live_count} buffer(s) still live"
            )

        if self._runtime.kind == "cuda":
            import torch

            torch.cuda.synchronize(self._runtime.device)
            torch.cuda.empty_cache()

        self._released = True
        logger.info("Destroyed %s runtime handle.", self._runtime.kind)

    def __enter__(self) -> "AcceleratorContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.release()
            return

        # Leave the in-flight exception in place
        try:
            self.release()
        except ResourceError as e:
            logger.error("%s while handling %s", e, exc_type.__name__)


def acquire(
    device_index: int = DEFAULT_DEVICE_INDEX,
    require_accelerator: bool = True,
) -> AcceleratorContext:
    """Bind to an accelerator and create the inference runtime handle.

    Args:
        device_index: Which accelerator to use
        require_accelerator: If False, fall back to the CPU when no
            accelerator is present

    Returns:
        A live AcceleratorContext

    Raises:
        DeviceUnavailable: If no accelerator is present, the index is out
            of range, or the runtime fails to initialize
    """
    profile = detect_hardware()
    logger.info("Found %d GPUs.", profile.device_count)
    logger.debug(
        "Host: %s, %d cores, %.1f GB RAM (%.1f GB available)",
        profile.cpu_model,
        profile.cpu_cores,
        profile.ram_total_gb,
        profile.ram_available_gb,
    )

    if not profile.devices:
        if require_accelerator:
            raise DeviceUnavailable("No accelerator device found")
        logger.warning("No accelerator device found, running on CPU")
        device = cpu_device()
        return AcceleratorContext(device, _create_runtime(device), device_count=0)

    if not 0 <= device_index < profile.device_count:
        raise DeviceUnavailable(
            f"Device index {device_index} out of range ({profile.device_count} device(s) found)"
        )

    device = profile.devices[device_index]
    logger.info("Compute capability: %s", device.capability_str())

    runtime = _create_runtime(device)
    logger.info("Created %s runtime handle on %s", runtime.kind, device.name)
    return AcceleratorContext(device, runtime, device_count=profile.device_count)


def release(ctx: AcceleratorContext) -> None:
    """Release a context. Idempotent."""
    ctx.release()


def _create_runtime(device: DeviceInfo) -> RuntimeHandle:
    """Initialize the runtime for a device.

    Raises:
        DeviceUnavailable: If the runtime fails to initialize
    """
    try:
        import torch
    except ImportError:
        if device.is_accelerator:
            raise DeviceUnavailable("PyTorch is required for accelerator devices")
        return RuntimeHandle(kind="cpu")

    try:
        if device.kind == "cuda":
            torch.cuda.set_device(device.index)
            return RuntimeHandle(
                kind="cuda",
                device=torch.device("cuda", device.index),
                cudnn=bool(torch.backends.cudnn.is_available()),
            )
        return RuntimeHandle(kind=device.kind, device=torch.device(device.kind))
    except Exception as e:
        raise DeviceUnavailable(f"Failed to initialize {device.kind} runtime: {e}") from e
