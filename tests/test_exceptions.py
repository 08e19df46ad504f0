"""Tests for custom exceptions."""

import pytest

from rasterclass.exceptions import (
    BackendError,
    BackendNotFoundError,
    ConfigError,
    DecodeError,
    DeviceUnavailable,
    InferenceError,
    InputError,
    RasterClassError,
    ResourceError,
    SinkWriteError,
)


class TestExceptionHierarchy:
    """Tests for exception class hierarchy."""

    def test_base_is_exception(self):
        """Test RasterClassError inherits from Exception."""
        assert issubclass(RasterClassError, Exception)

    @pytest.mark.parametrize(
        "exc",
        [
            DeviceUnavailable,
            DecodeError,
            InferenceError,
            SinkWriteError,
            ResourceError,
            BackendError,
            ConfigError,
            InputError,
        ],
    )
    def test_inherits_from_base(self, exc):
        """Test every error can be caught as RasterClassError."""
        assert issubclass(exc, RasterClassError)

    def test_backend_not_found_is_backend_error(self):
        """Test BackendNotFoundError inherits from BackendError."""
        assert issubclass(BackendNotFoundError, BackendError)

    def test_pipeline_errors_are_distinct(self):
        """Test decode and inference failures can be told apart."""
        assert not issubclass(DecodeError, InferenceError)
        assert not issubclass(InferenceError, DecodeError)


class TestExceptionMessages:
    """Tests for exception message handling."""

    def test_message_preserved(self):
        """Test exceptions keep their message."""
        assert str(DecodeError("bad header")) == "bad header"

    def test_catch_as_base(self):
        """Test catching specific errors via the base class."""
        with pytest.raises(RasterClassError):
            raise SinkWriteError("disk full")
