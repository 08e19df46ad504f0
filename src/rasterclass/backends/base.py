"""Abstract base class for inference backends.

A backend is the model: it turns one input buffer into one score per class.
The pipeline only knows this contract; loading weights and the forward
computation belong to the backend.

Example:
    class MyBackend(InferenceBackend):
        def get_info(self):
            return BackendInfo(name="mine", version="1.0.0", description="...")

        def run(self, input_buffer, input_desc, output_desc):
            return my_model(input_buffer)
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import numpy as np

from .schemas import BackendInfo

if TYPE_CHECKING:
    from ..core.context import AcceleratorContext
    from ..core.descriptors import TensorDescriptor


class InferenceBackend(ABC):
    """Base class that all backends must inherit from.

    Lifecycle:
        1. Backend is constructed with its options
        2. is_available() is checked
        3. bind() is called once with the run's accelerator context
        4. run() is called for each image, strictly one at a time
        5. close() is called before the context is released
    """

    def __init__(self) -> None:
        self._ctx: "AcceleratorContext | None" = None

    @property
    def context(self) -> "AcceleratorContext | None":
        """Context the backend is bound to, if any."""
        return self._ctx

    @abstractmethod
    def get_info(self) -> BackendInfo:
        """Return backend metadata."""
        pass

    def is_available(self) -> bool:
        """Check if the backend's dependencies and model files are present."""
        return True

    def bind(self, ctx: "AcceleratorContext") -> None:
        """Prepare the backend on the context's device.

        Subclasses that load weights should do it here and call super().

        Raises:
            BackendError: If the backend cannot be prepared
        """
        ctx.ensure_live()
        self._ctx = ctx

    @abstractmethod
    def run(
        self,
        input_buffer: np.ndarray,
        input_desc: "TensorDescriptor",
        output_desc: "TensorDescriptor",
    ) -> np.ndarray:
        """Score one image.

        Args:
            input_buffer: float32 array shaped ``input_desc.shape`` (NHWC)
            input_desc: Input descriptor
            output_desc: Output descriptor; ``channels`` is the class count

        Returns:
            Array with ``output_desc.element_count`` scores

        Raises:
            Any exception; the invoker reports it as InferenceError
        """
        pass

    def close(self) -> None:
        """Drop device state. Called before the context is released."""
        self._ctx = None
