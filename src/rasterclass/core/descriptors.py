"""Tensor descriptors: shape and type metadata handed to backends.

Descriptors own no memory. They are built right before an inference call
and discarded after it.
"""

from dataclasses import dataclass

from ..constants import IMAGE_CHANNELS
from .context import AcceleratorContext
from .tensors import DataType, Layout


@dataclass(frozen=True)
class TensorDescriptor:
    """Shape, layout and element type of a 4-D tensor."""

    batch: int
    channels: int
    height: int
    width: int
    layout: Layout
    dtype: DataType = DataType.FLOAT32

    @property
    def shape(self) -> tuple[int, int, int, int]:
        """Dimensions in memory order for this layout."""
        if self.layout is Layout.NHWC:
            return (self.batch, self.height, self.width, self.channels)
        return (self.batch, self.channels, self.height, self.width)

    @property
    def element_count(self) -> int:
        return self.batch * self.channels * self.height * self.width


def describe_input(ctx: AcceleratorContext, height: int, width: int) -> TensorDescriptor:
    """Descriptor for one channel-interleaved RGB image.

    Raises:
        DeviceUnavailable: If ``ctx`` has been released
        ValueError: If a dimension is not positive
    """
    ctx.ensure_live()
    _check_positive(height=height, width=width)
    return TensorDescriptor(
        batch=1,
        channels=IMAGE_CHANNELS,
        height=height,
        width=width,
        layout=Layout.NHWC,
    )


def describe_output(ctx: AcceleratorContext, class_count: int) -> TensorDescriptor:
    """Descriptor for a 1x1 channel-major score map with one channel per class.

    Raises:
        DeviceUnavailable: If ``ctx`` has been released
        ValueError: If ``class_count`` is not positive
    """
    ctx.ensure_live()
    _check_positive(class_count=class_count)
    return TensorDescriptor(
        batch=1,
        channels=class_count,
        height=1,
        width=1,
        layout=Layout.NCHW,
    )


def _check_positive(**dims: int) -> None:
    for name, value in dims.items():
        if value <= 0:
            raise ValueError(f"{name} must be positive, got {value}")
