"""Inference backends for rasterclass.

This package provides:
- InferenceBackend: Abstract base class every backend inherits
- BackendInfo: Backend metadata
- RandomBackend: Seeded random scores, no model
- Loader: Backend resolution by name

TorchScriptBackend and ONNXBackend live in their own modules and import
their runtimes only when bound.
"""

from .base import InferenceBackend
from .loader import BUILTIN_BACKENDS, list_backends, load_backend, resolve_backend_class
from .random_backend import RandomBackend
from .schemas import BackendInfo

__all__ = [
    "InferenceBackend",
    "BackendInfo",
    "RandomBackend",
    "BUILTIN_BACKENDS",
    "list_backends",
    "load_backend",
    "resolve_backend_class",
]
