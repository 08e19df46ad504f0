"""Backend resolution and loading.

A backend is named either by a built-in registry key ("random",
"torchscript", "onnx"), an importable ``package.module:ClassName``, or a
file path ``path/to/backend.py:ClassName``.
"""

import importlib
import importlib.util
import inspect
import sys
from pathlib import Path
from typing import Any

from ..exceptions import BackendError, BackendNotFoundError
from .base import InferenceBackend

BUILTIN_BACKENDS: dict[str, str] = {
    "random": "rasterclass.backends.random_backend:RandomBackend",
    "torchscript": "rasterclass.backends.torchscript_backend:TorchScriptBackend",
    "onnx": "rasterclass.backends.onnx_backend:ONNXBackend",
}


def list_backends() -> list[str]:
    """Names of the built-in backends."""
    return sorted(BUILTIN_BACKENDS)


def resolve_backend_class(name: str) -> type[InferenceBackend]:
    """Find the class a backend name refers to.

    Raises:
        BackendNotFoundError: If the name can't be resolved
        BackendError: If it resolves to something that isn't a backend
    """
    target = BUILTIN_BACKENDS.get(name, name)
    module_ref, sep, class_name = target.rpartition(":")
    if not sep or not module_ref or not class_name:
        raise BackendNotFoundError(
            f"Unknown backend '{name}'. Built-in: {', '.join(list_backends())}; "
            "or use 'module:Class' / 'file.py:Class'"
        )

    if module_ref.endswith(".py"):
        module = _import_file(Path(module_ref))
    else:
        try:
            module = importlib.import_module(module_ref)
        except ImportError as e:
            raise BackendNotFoundError(f"Cannot import backend module '{module_ref}': {e}") from e

    try:
        backend_class = getattr(module, class_name)
    except AttributeError:
        raise BackendNotFoundError(f"Backend class '{class_name}' not found in {module_ref}")

    if not (inspect.isclass(backend_class) and issubclass(backend_class, InferenceBackend)):
        raise BackendError(f"{class_name} does not inherit from InferenceBackend")

    return backend_class


def load_backend(name: str, options: dict[str, Any] | None = None) -> InferenceBackend:
    """Instantiate a backend.

    Options the backend's constructor doesn't accept are ignored, so one
    config section can serve every backend. Empty strings count as unset.

    Args:
        name: Backend name (see module docstring)
        options: Constructor keyword arguments

    Returns:
        Backend instance (not yet bound to a context)

    Raises:
        BackendNotFoundError: If the backend can't be found
        BackendError: If it can't be constructed
    """
    backend_class = resolve_backend_class(name)
    options = {k: v for k, v in (options or {}).items() if v is not None and v != ""}

    params = inspect.signature(backend_class.__init__).parameters
    accepts_any = any(p.kind is inspect.Parameter.VAR_KEYWORD for p in params.values())
    kwargs = {k: v for k, v in options.items() if accepts_any or k in params}

    try:
        return backend_class(**kwargs)
    except TypeError as e:
        raise BackendError(f"Cannot configure backend '{name}': {e}") from e


def _import_file(path: Path):
    """Import a backend module from a file path."""
    if not path.is_file():
        raise BackendNotFoundError(f"Backend file not found: {path}")

    module_name = f"rasterclass_backend_{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise BackendError(f"Cannot load module from {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        sys.modules.pop(module_name, None)
        raise BackendError(f"Failed to import {path}: {e}") from e
    return module
