"""Pytest configuration and fixtures."""

import tempfile
from pathlib import Path
from unittest.mock import patch

import numpy as np
import pytest
from click.testing import CliRunner
from PIL import Image

from rasterclass.backends.base import InferenceBackend
from rasterclass.backends.schemas import BackendInfo


class StubBackend(InferenceBackend):
    """Backend returning fixed scores for every image."""

    def __init__(self, scores=(0.1, 0.9, 0.2)):
        super().__init__()
        self.scores = np.asarray(scores, dtype=np.float32)
        self.calls = 0
        self.bound = False
        self.closed = False

    def get_info(self) -> BackendInfo:
        return BackendInfo(name="stub", version="1.0.0", description="Fixed scores")

    def bind(self, ctx) -> None:
        super().bind(ctx)
        self.bound = True

    def run(self, input_buffer, input_desc, output_desc):
        self.calls += 1
        return self.scores.copy()

    def close(self) -> None:
        self.closed = True
        super().close()


class InterruptingBackend(StubBackend):
    """Backend interrupted mid forward pass (Ctrl-C)."""

    def run(self, input_buffer, input_desc, output_desc):
        self.calls += 1
        raise KeyboardInterrupt


class FailingBackend(StubBackend):
    """Backend that raises on every call."""

    def run(self, input_buffer, input_desc, output_desc):
        self.calls += 1
        raise RuntimeError("device lost")


@pytest.fixture
def runner():
    """Create a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_tiff():
    """Factory writing a TIFF image and returning its path."""

    def _make(path: Path, size=(2, 2), color=(255, 255, 255), mode="RGB") -> Path:
        img = Image.new(mode, size, color=color)
        img.save(path, "TIFF")
        return path

    return _make


@pytest.fixture
def image_dir(temp_dir):
    """Directory for input images, separate from the report location."""
    folder = temp_dir / "images"
    folder.mkdir()
    return folder


@pytest.fixture
def white_tiff(image_dir, make_tiff):
    """A 2x2 all-white TIFF."""
    return make_tiff(image_dir / "white.tiff")


@pytest.fixture
def corrupted_tiff(image_dir):
    """A file with a TIFF suffix that isn't an image."""
    path = image_dir / "corrupt.tiff"
    path.write_bytes(b"not a valid tiff file")
    return path


@pytest.fixture
def no_accelerator():
    """Pretend the host has no accelerator."""
    with patch("rasterclass.core.hardware._detect_accelerators", return_value=[]):
        yield


@pytest.fixture
def cpu_context(no_accelerator):
    """A CPU context, released after the test."""
    from rasterclass.core.context import acquire

    ctx = acquire(require_accelerator=False)
    yield ctx
    # Tests that leak buffers should fail on their own assertions first
    for buffer in list(ctx.allocator._live.values()):
        buffer.release()
    ctx.release()


@pytest.fixture
def stub_backend():
    return StubBackend()
