"""Dotted path import helpers."""

import importlib
from pathlib import Path
from types import ModuleType
from typing import Any, Union

__all__ = (
    "import_string",
    "module_directory",
)


def module_directory(obj: Any) -> "Path":
    """Find the directory of the module that defines ``obj``.

    Args:
        obj: A class, function or module.

    Raises:
        TypeError: The module has no file on disk.

    Returns:
        Path: The directory containing the module source.
    """
    module: Union[ModuleType, None] = obj if isinstance(obj, ModuleType) else importlib.import_module(obj.__module__)
    origin = getattr(module, "__file__", None)
    if origin is None:
        msg = f"Couldn't find the path for {getattr(module, '__name__', obj)!r}"
        raise TypeError(msg)
    return Path(origin).resolve().parent


def import_string(dotted_path: str) -> "Any":
    """Dotted Path Import.

    Import a dotted module path and return the attribute/class designated by the
    last name in the path. Raise ImportError if the import failed.

    Args:
        dotted_path: The path of the module to import.

    Raises:
        ImportError: Could not import the module.

    Returns:
        object: The imported object.
    """
    try:
        parts = dotted_path.split(".")
        for i in range(len(parts), 0, -1):
            module_path = ".".join(parts[:i])
            try:
                module = importlib.import_module(module_path)
                break
            except ModuleNotFoundError:
                continue
        else:
            msg = f"{dotted_path} doesn't look like a module path"
            raise ImportError(msg)
        obj = module
        for attr in parts[i:]:
            try:
                obj = getattr(obj, attr)
            except AttributeError as e:
                msg = f"Module '{module.__name__}' has no attribute '{attr}' in '{dotted_path}'"
                raise ImportError(msg) from e
        return obj
    except Exception as e:
        msg = f"Could not import '{dotted_path}': {e}"
        raise ImportError(msg) from e
