"""TorchScript model backend.

Loads a scripted or traced classifier with ``torch.jit.load`` onto the
context's device. The model receives an NCHW float32 batch and must return
one row of class scores.
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


class TorchScriptBackend(InferenceBackend):
    """Run a TorchScript classifier.

    Args:
        model_path: Path to the ``.pt`` TorchScript file
        softmax: Convert logits to probabilities before returning
    """

    def __init__(self, model_path: str | Path, softmax: bool = False):
        super().__init__()
        self.model_path = Path(model_path)
        self.softmax = softmax
        self._model = None
        self._device = None

    def get_info(self) -> BackendInfo:
        return BackendInfo(
            name="torchscript",
            version=BACKEND_VERSION,
            description="TorchScript classifier on the accelerator device",
            requires=["torch"],
        )

    def is_available(self) -> bool:
        try:
            import torch  # noqa: F401
        except ImportError:
            return False
        return self.model_path.is_file()

    def bind(self, ctx) -> None:
        super().bind(ctx)
        try:
            import torch
        except ImportError as e:
            raise BackendError("torchscript backend requires PyTorch") from e

        if not self.model_path.is_file():
            raise BackendError(f"Model file not found: {self.model_path}")

        self._device = ctx.runtime.device or torch.device("cpu")
        try:
            self._model = torch.jit.load(str(self.model_path), map_location=self._device)
        except Exception as e:
            raise BackendError(f"Failed to load {self.model_path}: {e}") from e
        self._model.eval()
        logger.info("Loaded %s on %s", self.model_path.name, self._device)

    def run(self, input_buffer, input_desc, output_desc) -> np.ndarray:
        import torch

        if self._model is None:
            raise BackendError("torchscript backend used before bind()")

        with torch.no_grad():
            batch = torch.from_numpy(input_buffer).to(self._device)
            batch = batch.permute(0, 3, 1, 2).contiguous()  # NHWC -> NCHW
            logits = self._model(batch)
            if self._device.type == "cuda":
                torch.cuda.synchronize(self._device)
            scores = logits.detach().float().cpu().numpy().reshape(-1)

        return _softmax(scores) if self.softmax else scores

    def close(self) -> None:
        self._model = None
        self._device = None
        super().close()
