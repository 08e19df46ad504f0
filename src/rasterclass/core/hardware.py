"""Accelerator discovery.

Probes the host and the accelerators PyTorch can see. torch is imported
lazily: a host without torch simply has no accelerator.

Usage:
    profile = detect_hardware()
    if profile.device_count:
        print(profile.devices[0].compute_capability)
"""

import platform
from dataclasses import dataclass, field

import psutil

from ..exceptions import DeviceUnavailable


@dataclass
class DeviceInfo:
    """One compute device.

    Attributes:
        index: Device ordinal within its kind
        kind: "cuda", "mps" or "cpu"
        name: Human-readable device name
        compute_capability: (major, minor) for CUDA devices, else None
        total_memory_gb: Device memory, None when the runtime doesn't expose it
    """

    index: int
    kind: str
    name: str
    compute_capability: tuple[int, int] | None = None
    total_memory_gb: float | None = None

    @property
    def is_accelerator(self) -> bool:
        return self.kind != "cpu"

    def capability_str(self) -> str:
        if self.compute_capability is None:
            return "n/a"
        major, minor = self.compute_capability
        return f"{major}.{minor}"


@dataclass
class HardwareProfile:
    """Host and accelerator summary."""

    cpu_model: str
    cpu_cores: int
    ram_total_gb: float
    ram_available_gb: float
    devices: list[DeviceInfo] = field(default_factory=list)

    @property
    def device_count(self) -> int:
        return len(self.devices)


def detect_hardware() -> HardwareProfile:
    """Detect host capabilities and visible accelerators.

    Returns:
        HardwareProfile; ``devices`` is empty when no accelerator is usable

    Raises:
        DeviceUnavailable: If host probing itself fails
    """
    try:
        cpu_model = platform.processor() or "Unknown"
        cpu_cores = psutil.cpu_count(logical=False) or 1

        mem = psutil.virtual_memory()
        ram_total_gb = round(mem.total / (1024**3), 1)
        ram_available_gb = round(mem.available / (1024**3), 1)
    except Exception as e:
        raise DeviceUnavailable(f"Failed to probe host: {e}") from e

    return HardwareProfile(
        cpu_model=cpu_model,
        cpu_cores=cpu_cores,
        ram_total_gb=ram_total_gb,
        ram_available_gb=ram_available_gb,
        devices=_detect_accelerators(),
    )


def _detect_accelerators() -> list[DeviceInfo]:
    """List usable accelerators, CUDA first, then Apple MPS.

    Returns:
        List of DeviceInfo, empty if none (or torch isn't installed)
    """
    try:
        import torch
    except ImportError:
        return []  # torch not installed

    try:
        if torch.cuda.is_available():
            devices = []
            for index in range(torch.cuda.device_count()):
                props = torch.cuda.get_device_properties(index)
                devices.append(
                    DeviceInfo(
                        index=index,
                        kind="cuda",
                        name=torch.cuda.get_device_name(index),
                        compute_capability=(int(props.major), int(props.minor)),
                        total_memory_gb=round(props.total_memory / (1024**3), 1),
                    )
                )
            return devices
    except Exception:
        pass  # CUDA detection failed, try MPS

    try:
        if hasattr(torch.backends, "mps") and torch.backends.mps.is_available():
            # MPS doesn't expose memory or capability info
            return [DeviceInfo(index=0, kind="mps", name="Apple Silicon")]
    except Exception:
        pass

    return []


def cpu_device() -> DeviceInfo:
    """Host CPU as a pseudo-device for runs that allow CPU fallback."""
    return DeviceInfo(index=0, kind="cpu", name=platform.processor() or "CPU")
