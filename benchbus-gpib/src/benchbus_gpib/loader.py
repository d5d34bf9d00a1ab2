"""Dynamic instrument factory loading via importlib.

Bench files name their instrument factories as ``"module:function"``
strings, which are resolved at runtime.

Example:
    factory = load_driver("benchbus_hp3457a:create_instrument")
    instrument = factory(resource="GPIB0::22::INSTR")
"""

from __future__ import annotations

import importlib
from typing import Any, Callable


def load_driver(driver_path: str) -> Callable[..., Any]:
    """Load an instrument factory function from a module path.

    Args:
        driver_path: Path in "module:function" format
            (e.g., "benchbus_hp3457a:create_instrument").

    Returns:
        The loaded factory function.

    Raises:
        ValueError: If the driver path format is invalid.
        ImportError: If the module cannot be imported.
        AttributeError: If the function doesn't exist in the module.
        TypeError: If the attribute is not callable.
    """
    module_path, sep, func_name = driver_path.rpartition(":")
    if not sep or not module_path or not func_name:
        raise ValueError(
            f"Invalid driver path '{driver_path}': must be in 'module:function' format"
        )

    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise ImportError(f"Failed to import module '{module_path}': {exc}") from exc

    factory = getattr(module, func_name, None)
    if factory is None:
        raise AttributeError(f"Module '{module_path}' has no attribute '{func_name}'")
    if not callable(factory):
        raise TypeError(f"'{driver_path}' is not callable")
    return factory
