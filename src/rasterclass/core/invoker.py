"""Inference invocation.

Drives an injected backend for one image and collects its class scores
into a buffer owned by the accelerator context.
"""

import logging
import time

import numpy as np

from ..backends.base import InferenceBackend
from ..exceptions import InferenceError
from .context import AcceleratorContext
from .descriptors import TensorDescriptor
from .tensors import ImageTensor, Layout, ScoreTensor

logger = logging.getLogger(__name__)


class InferenceInvoker:
    """Runs one image through a backend and returns a ScoreTensor.

    The caller owns the returned ScoreTensor and must release it (use it as
    a context manager). On failure nothing is left allocated.

    Example:
        >>> invoker = InferenceInvoker(RandomBackend(seed=0))
        >>> with invoker.infer(ctx, image, in_desc, out_desc, 10) as scores:
        ...     print(scores.scores.argmax())
    """

    def __init__(self, backend: InferenceBackend):
        self._backend = backend

    @property
    def backend(self) -> InferenceBackend:
        return self._backend

    def infer(
        self,
        ctx: AcceleratorContext,
        image: ImageTensor,
        input_desc: TensorDescriptor,
        output_desc: TensorDescriptor,
        class_count: int,
    ) -> ScoreTensor:
        """Produce one score per class for ``image``.

        Args:
            ctx: Live accelerator context
            image: Decoded input tensor
            input_desc: Descriptor matching ``image``
            output_desc: Descriptor for ``class_count`` scores
            class_count: Number of classes

        Returns:
            ScoreTensor with ``class_count`` float32 scores

        Raises:
            DeviceUnavailable: If ``ctx`` has been released
            InferenceError: If descriptors don't match, allocation fails, or
                the backend fails or returns the wrong number of scores
        """
        ctx.ensure_live()
        _check_descriptors(image, input_desc, output_desc, class_count)

        try:
            output = ctx.allocate((class_count,), output_desc.dtype.numpy_dtype)
        except MemoryError as e:
            raise InferenceError(f"Failed to allocate output buffer: {e}") from e

        try:
            input_view = image.data.reshape(input_desc.shape)
            started = time.perf_counter()
            result = self._backend.run(input_view, input_desc, output_desc)
            elapsed_ms = (time.perf_counter() - started) * 1000

            scores = np.asarray(result, dtype=output.array.dtype).reshape(-1)
            if scores.size != class_count:
                raise InferenceError(
                    f"Backend returned {scores.size} scores, expected {class_count}"
                )
            if not np.all(np.isfinite(scores)):
                raise InferenceError("Backend returned non-finite scores")

            output.array[:] = scores
        except InferenceError:
            output.release()
            raise
        except Exception as e:
            output.release()
            raise InferenceError(f"Backend {self._backend.get_info().name} failed: {e}") from e
        except BaseException:
            output.release()
            raise

        logger.debug("Inference took %.2f ms", elapsed_ms)
        return ScoreTensor(class_count=class_count, buffer=output, inference_time_ms=elapsed_ms)


def _check_descriptors(
    image: ImageTensor,
    input_desc: TensorDescriptor,
    output_desc: TensorDescriptor,
    class_count: int,
) -> None:
    if input_desc.layout is not Layout.NHWC or image.layout is not Layout.NHWC:
        raise InferenceError("Input tensor must be channel-interleaved (NHWC)")
    if (input_desc.height, input_desc.width, input_desc.channels) != (
        image.height,
        image.width,
        image.channels,
    ):
        raise InferenceError(
            f"Input descriptor {input_desc.height}x{input_desc.width}x{input_desc.channels} "
            f"doesn't match image {image.height}x{image.width}x{image.channels}"
        )
    if output_desc.channels != class_count:
        raise InferenceError(
            f"Output descriptor has {output_desc.channels} channels, expected {class_count}"
        )
