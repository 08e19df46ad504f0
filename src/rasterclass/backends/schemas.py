"""Data schemas for the backend system."""

from dataclasses import asdict, dataclass, field


@dataclass
class BackendInfo:
    """Metadata about an inference backend.

    Attributes:
        name: Registry name (e.g., "torchscript")
        version: Backend version string
        description: Human-readable description
        requires: Python packages the backend needs beyond the core install

    Example:
        >>> info = BackendInfo(name="random", version="1.0.0", description="Random scores")
    """

    name: str
    version: str
    description: str
    requires: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for display."""
        return asdict(self)
