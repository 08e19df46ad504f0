"""Random-score backend.

Stands in for a real model: every class gets a uniform [0, 1) score. The
generator is reseeded on bind(), so two runs with the same seed write the
same report.
"""

import numpy as np

from .base import InferenceBackend
from .schemas import BackendInfo

BACKEND_VERSION = "1.0.0"


class RandomBackend(InferenceBackend):
    """Uniform random scores from a seeded generator."""

    def __init__(self, seed: int = 0):
        super().__init__()
        self.seed = seed
        self._rng = np.random.default_rng(seed)

    def get_info(self) -> BackendInfo:
        return BackendInfo(
            name="random",
            version=BACKEND_VERSION,
            description="Seeded uniform random scores (no model)",
        )

    def bind(self, ctx) -> None:
        super().bind(ctx)
        self._rng = np.random.default_rng(self.seed)

    def run(self, input_buffer, input_desc, output_desc) -> np.ndarray:
        return self._rng.random(output_desc.element_count, dtype=np.float32)
