"""rasterclass - Batch classification of tagged raster images on an accelerator."""

from importlib.metadata import PackageNotFoundError, version
from pathlib import Path


def _get_version() -> str:
    """Get version from package metadata or VERSION file."""
    # Try installed package metadata first (works when installed)
    try:
        return version("rasterclass")
    except PackageNotFoundError:
        pass

    # Fall back to VERSION file (works in development)
    version_file = Path(__file__).parent.parent.parent / "VERSION"
    if version_file.exists():
        return version_file.read_text().strip()

    return "0.0.0"


__version__ = _get_version()
