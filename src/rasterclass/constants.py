"""Application-wide constants.

Centralizes magic numbers and strings to avoid hardcoding throughout the codebase.
"""

from enum import Enum
from typing import Final

# =============================================================================
# VERSION AND METADATA
# =============================================================================

APP_NAME: Final[str] = "rasterclass"

# =============================================================================
# INPUT
# =============================================================================

# Tagged raster suffixes, matched exactly (case-sensitive) by default
TAGGED_IMAGE_EXTENSIONS: Final[tuple[str, ...]] = (".tiff", ".tif")

# Pillow format names accepted by the decoder
TAGGED_IMAGE_FORMATS: Final[frozenset[str]] = frozenset({"TIFF"})

# Fixed RGB channel count of every image tensor
IMAGE_CHANNELS: Final[int] = 3

# Source samples are 8-bit
MAX_SAMPLE_VALUE: Final[float] = 255.0

# =============================================================================
# INFERENCE
# =============================================================================

DEFAULT_CLASS_COUNT: Final[int] = 10
DEFAULT_BACKEND: Final[str] = "random"
DEFAULT_SEED: Final[int] = 0
DEFAULT_DEVICE_INDEX: Final[int] = 0


class ErrorPolicy(str, Enum):
    """What the batch does when one file fails to decode or infer."""

    ABORT = "abort"        # stop the whole run (reference behavior)
    CONTINUE = "continue"  # write an error record and move on


# =============================================================================
# REPORT
# =============================================================================

REPORT_ENCODING: Final[str] = "utf-8"

# =============================================================================
# ERROR CODES
# =============================================================================


class ExitCode(int, Enum):
    """CLI exit codes."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    PARTIAL_FAILURE = 2
    KEYBOARD_INTERRUPT = 130
