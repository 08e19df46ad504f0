"""ONNX Runtime model backend.

Runs an exported classifier through onnxruntime, preferring the CUDA
execution provider when the context is on a CUDA device.
"""

import logging
from pathlib import Path

import numpy as np

from ..exceptions import BackendError
from .base import InferenceBackend
from .schemas import BackendInfo

logger = logging.getLogger(__name__)

BACKEND_VERSION = "1.0.0"


def _softmax(logits: np.ndarray) -> np.ndarray:
    exp = np.exp(logits - logits.max())
    return exp / exp.sum()


class ONNXBackend(InferenceBackend):
    """Run an ONNX classifier.

    Args:
        model_path: Path to the ``.onnx`` file
        softmax: Convert logits to probabilities before returning
    """

    def __init__(self, model_path: str | Path, softmax: bool = False):
        super().__init__()
        self.model_path = Path(model_path)
        self.softmax = softmax
        self._session = None
        self._input_name: str | None = None

    def get_info(self) -> BackendInfo:
        return BackendInfo(
            name="onnx",
            version=BACKEND_VERSION,
            description="ONNX Runtime classifier",
            requires=["onnxruntime"],
        )

    def is_available(self) -> bool:
        try:
            import onnxruntime  # noqa: F401
        except ImportError:
            return False
        return self.model_path.is_file()

    def bind(self, ctx) -> None:
        super().bind(ctx)
        try:
            import onnxruntime as ort
        except ImportError as e:
            raise BackendError("onnx backend requires onnxruntime") from e

        if not self.model_path.is_file():
            raise BackendError(f"Model file not found: {self.model_path}")

        available = ort.get_available_providers()
        providers = ["CPUExecutionProvider"]
        if ctx.runtime.kind == "cuda" and "CUDAExecutionProvider" in available:
            providers.insert(0, ("CUDAExecutionProvider", {"device_id": ctx.device.index}))

        try:
            self._session = ort.InferenceSession(str(self.model_path), providers=providers)
        except Exception as e:
            raise BackendError(f"Failed to load {self.model_path}: {e}") from e
        self._input_name = self._session.get_inputs()[0].name
        logger.info("Loaded %s with %s", self.model_path.name, self._session.get_providers())

    def run(self, input_buffer, input_desc, output_desc) -> np.ndarray:
        if self._session is None:
            raise BackendError("onnx backend used before bind()")

        batch = np.ascontiguousarray(input_buffer.transpose(0, 3, 1, 2))  # NHWC -> NCHW
        logits = self._session.run(None, {self._input_name: batch})[0]
        scores = np.asarray(logits, dtype=np.float32).reshape(-1)
        return _softmax(scores) if self.softmax else scores

    def close(self) -> None:
        self._session = None
        self._input_name = None
        super().close()
