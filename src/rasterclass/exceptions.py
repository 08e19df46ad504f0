"""Custom exceptions for rasterclass.

Each exception type represents a category of error.
Catch specific exceptions to handle errors appropriately.
"""


class RasterClassError(Exception):
    """Base exception for all rasterclass errors."""

    pass


class DeviceUnavailable(RasterClassError):
    """Raised when no accelerator is usable or the runtime fails to start.

    Also raised when an operation is attempted on a released context.
    """

    pass


class DecodeError(RasterClassError):
    """Raised when an image cannot be opened, parsed or read."""

    pass


class InferenceError(RasterClassError):
    """Raised when output allocation or the backend computation fails."""

    pass


class SinkWriteError(RasterClassError):
    """Raised when the classification report cannot be written."""

    pass


class ResourceError(RasterClassError):
    """Raised when buffer ownership rules are broken.

    Examples: releasing a context while buffers are live, or freeing a
    buffer twice through the allocator.
    """

    pass


class BackendError(RasterClassError):
    """Raised when an inference backend fails to load or bind."""

    pass


class BackendNotFoundError(BackendError):
    """Raised when a requested backend doesn't exist."""

    pass


class ConfigError(RasterClassError):
    """Raised when configuration is invalid or missing."""

    pass


class InputError(RasterClassError):
    """Raised when the input folder is missing or not a directory."""

    pass
