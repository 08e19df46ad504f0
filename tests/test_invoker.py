"""Tests for the inference invoker."""

import numpy as np
import pytest
from conftest import FailingBackend, InterruptingBackend, StubBackend

from rasterclass.core.descriptors import describe_input, describe_output
from rasterclass.core.invoker import InferenceInvoker
from rasterclass.exceptions import DeviceUnavailable, InferenceError
from rasterclass.utils.image import decode


@pytest.fixture
def image(white_tiff, cpu_context):
    tensor = decode(white_tiff, cpu_context)
    yield tensor
    tensor.release()


def _descriptors(ctx, image, class_count=3):
    return describe_input(ctx, image.height, image.width), describe_output(ctx, class_count)


class TestInfer:
    """Tests for successful inference."""

    def test_returns_scores(self, cpu_context, image):
        backend = StubBackend([0.1, 0.9, 0.2])
        in_desc, out_desc = _descriptors(cpu_context, image)

        with InferenceInvoker(backend).infer(cpu_context, image, in_desc, out_desc, 3) as scores:
            assert scores.class_count == 3
            assert scores.scores.dtype == np.float32
            np.testing.assert_allclose(scores.scores, [0.1, 0.9, 0.2], rtol=1e-6)
            assert scores.inference_time_ms >= 0.0

        assert backend.calls == 1

    def test_backend_sees_nhwc_batch(self, cpu_context, image):
        """Test the backend receives a (1, H, W, 3) view of the samples."""
        seen = {}

        class Recording(StubBackend):
            def run(self, input_buffer, input_desc, output_desc):
                seen["shape"] = input_buffer.shape
                seen["max"] = float(input_buffer.max())
                return super().run(input_buffer, input_desc, output_desc)

        in_desc, out_desc = _descriptors(cpu_context, image)
        InferenceInvoker(Recording()).infer(cpu_context, image, in_desc, out_desc, 3).release()

        assert seen == {"shape": (1, 2, 2, 3), "max": 1.0}

    def test_output_buffer_tracked(self, cpu_context, image):
        in_desc, out_desc = _descriptors(cpu_context, image)
        scores = InferenceInvoker(StubBackend()).infer(cpu_context, image, in_desc, out_desc, 3)

        assert cpu_context.allocator.live_count == 2  # image + scores
        scores.release()
        assert cpu_context.allocator.live_count == 1


class TestInferFailures:
    """Failures must not leak the output buffer."""

    def test_backend_error(self, cpu_context, image):
        in_desc, out_desc = _descriptors(cpu_context, image)
        allocations = cpu_context.allocator.allocations

        with pytest.raises(InferenceError, match="device lost"):
            InferenceInvoker(FailingBackend()).infer(cpu_context, image, in_desc, out_desc, 3)

        assert cpu_context.allocator.allocations == allocations + 1
        assert cpu_context.allocator.live_count == 1  # only the image

    def test_interrupt_releases_output(self, cpu_context, image):
        """Test Ctrl-C during the forward pass still frees the output buffer."""
        in_desc, out_desc = _descriptors(cpu_context, image)

        with pytest.raises(KeyboardInterrupt):
            InferenceInvoker(InterruptingBackend()).infer(cpu_context, image, in_desc, out_desc, 3)

        assert cpu_context.allocator.live_count == 1  # only the image

    def test_wrong_score_count(self, cpu_context, image):
        in_desc, out_desc = _descriptors(cpu_context, image, class_count=4)

        with pytest.raises(InferenceError, match="expected 4"):
            InferenceInvoker(StubBackend([0.1, 0.9, 0.2])).infer(
                cpu_context, image, in_desc, out_desc, 4
            )
        assert cpu_context.allocator.live_count == 1

    def test_non_finite_scores(self, cpu_context, image):
        in_desc, out_desc = _descriptors(cpu_context, image)

        with pytest.raises(InferenceError, match="non-finite"):
            InferenceInvoker(StubBackend([0.1, float("nan"), 0.2])).infer(
                cpu_context, image, in_desc, out_desc, 3
            )
        assert cpu_context.allocator.live_count == 1

    def test_descriptor_mismatch(self, cpu_context, image):
        in_desc = describe_input(cpu_context, 5, 5)
        out_desc = describe_output(cpu_context, 3)

        with pytest.raises(InferenceError, match="doesn't match"):
            InferenceInvoker(StubBackend()).infer(cpu_context, image, in_desc, out_desc, 3)

    def test_output_descriptor_class_mismatch(self, cpu_context, image):
        in_desc, out_desc = _descriptors(cpu_context, image, class_count=5)

        with pytest.raises(InferenceError, match="expected 3"):
            InferenceInvoker(StubBackend()).infer(cpu_context, image, in_desc, out_desc, 3)

    def test_allocation_failure(self, cpu_context, image, monkeypatch):
        in_desc, out_desc = _descriptors(cpu_context, image)

        def _fail(*args, **kwargs):
            raise MemoryError("out of device memory")

        monkeypatch.setattr(cpu_context, "allocate", _fail)
        with pytest.raises(InferenceError, match="allocate"):
            InferenceInvoker(StubBackend()).infer(cpu_context, image, in_desc, out_desc, 3)

    def test_released_context(self, no_accelerator, white_tiff):
        from rasterclass.core.context import acquire

        ctx = acquire(require_accelerator=False)
        image = decode(white_tiff, ctx)
        in_desc, out_desc = _descriptors(ctx, image)
        image.release()
        ctx.release()

        with pytest.raises(DeviceUnavailable):
            InferenceInvoker(StubBackend()).infer(ctx, image, in_desc, out_desc, 3)
