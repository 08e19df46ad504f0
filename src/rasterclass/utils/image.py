"""Tagged raster image discovery and decoding.

Handles:
- Matching directory entries against the tagged-image suffix set
- Decoding TIFF files with Pillow into normalized RGB float tensors
"""

from collections.abc import Iterable
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

from ..constants import (
    IMAGE_CHANNELS,
    MAX_SAMPLE_VALUE,
    TAGGED_IMAGE_EXTENSIONS,
    TAGGED_IMAGE_FORMATS,
)
from ..core.context import AcceleratorContext
from ..core.tensors import BufferAllocator, ImageTensor
from ..exceptions import DecodeError, InputError


def is_tagged_image(
    path: Path,
    extensions: Iterable[str] = TAGGED_IMAGE_EXTENSIONS,
    case_sensitive: bool = True,
) -> bool:
    """Check if a path carries a tagged-image suffix.

    Args:
        path: Path to check
        extensions: Accepted suffixes, including the dot
        case_sensitive: If False, ".TIF" matches ".tif"

    Returns:
        True if the suffix matches
    """
    suffix = path.suffix
    if case_sensitive:
        return suffix in extensions
    return suffix.lower() in {ext.lower() for ext in extensions}


def list_candidates(
    folder: Path,
    extensions: Iterable[str] = TAGGED_IMAGE_EXTENSIONS,
    case_sensitive: bool = True,
) -> list[Path]:
    """List the files in ``folder`` that should be classified.

    Not recursive. Other entries are skipped silently.

    Args:
        folder: Input directory
        extensions: Accepted suffixes
        case_sensitive: Suffix matching mode

    Returns:
        Matching files sorted by name

    Raises:
        InputError: If ``folder`` doesn't exist or isn't a directory
    """
    if not folder.exists():
        raise InputError(f"Input folder not found: {folder}")
    if not folder.is_dir():
        raise InputError(f"Not a directory: {folder}")

    extensions = tuple(extensions)
    return sorted(
        entry
        for entry in folder.iterdir()
        if entry.is_file() and is_tagged_image(entry, extensions, case_sensitive)
    )


def decode(path: Path, ctx: AcceleratorContext | None = None) -> ImageTensor:
    """Decode one tagged image into a normalized RGB tensor.

    The sample buffer is (height, width, 3) float32, channel-interleaved and
    row-major, with 8-bit source samples divided by 255. Alpha is dropped.
    Pillow's own decode buffers are closed before returning.

    Args:
        path: Image file
        ctx: Context to allocate the sample buffer from. Without one the
            buffer comes from a private allocator.

    Returns:
        ImageTensor owned by the caller

    Raises:
        DecodeError: If the file can't be opened, isn't a tagged image,
            or its pixels can't be allocated or read
    """
    path = Path(path)

    try:
        img = Image.open(path)
    except FileNotFoundError as e:
        raise DecodeError(f"Image not found: {path}") from e
    except UnidentifiedImageError as e:
        raise DecodeError(f"Not a decodable image: {path}") from e
    except OSError as e:
        raise DecodeError(f"Could not open {path}: {e}") from e

    with img:
        if img.format not in TAGGED_IMAGE_FORMATS:
            raise DecodeError(
                f"Unsupported format {img.format} for {path}. "
                f"Supported: {', '.join(sorted(TAGGED_IMAGE_FORMATS))}"
            )

        width, height = img.size
        if width <= 0 or height <= 0:
            raise DecodeError(f"Invalid dimensions {width}x{height} in {path}")

        try:
            if ctx is not None:
                buffer = ctx.allocate((height, width, IMAGE_CHANNELS))
            else:
                buffer = BufferAllocator().allocate((height, width, IMAGE_CHANNELS))
        except MemoryError as e:
            raise DecodeError(f"Could not allocate {width}x{height} sample buffer: {e}") from e

        try:
            raster = _read_rgb(img)
            if raster.shape != (height, width, IMAGE_CHANNELS):
                raise DecodeError(
                    f"Raster shape {raster.shape} doesn't match header {width}x{height} in {path}"
                )
            np.divide(raster, MAX_SAMPLE_VALUE, out=buffer.array, dtype=np.float32)
        except DecodeError:
            buffer.release()
            raise
        except (OSError, ValueError, SyntaxError) as e:
            # Pillow raises these for truncated or malformed pixel data
            buffer.release()
            raise DecodeError(f"Could not read pixels of {path}: {e}") from e
        except BaseException:
            buffer.release()
            raise

    return ImageTensor(width=width, height=height, buffer=buffer)


def _read_rgb(img: Image.Image) -> np.ndarray:
    """Read the full raster as 8-bit RGB, dropping alpha."""
    if img.mode != "RGB":
        # RGBA -> RGB discards alpha; palette and grayscale expand to RGB
        rgb = img.convert("RGB")
        try:
            return np.asarray(rgb, dtype=np.uint8)
        finally:
            rgb.close()
    img.load()
    return np.asarray(img, dtype=np.uint8)
