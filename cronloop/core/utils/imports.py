"""
Task locator resolution.

A locator names the callable a host program schedules:
- "pkg.module:func"       dotted module path (recommended)
- "path/to/file.py:func"  file path, parent dir is added to sys.path

No implicit heuristics: the caller controls sys.path, apart from the
pyproject.toml convenience in setup_sys_path_from_cwd().
"""

from __future__ import annotations

import hashlib
import importlib
import importlib.util
import os
import sys
from typing import Any, Callable

from cronloop.core.errors import ConfigurationError, ErrorCode
from cronloop.core.logging import get_logger

logger = get_logger("imports")


def find_project_root(start_dir: str) -> str | None:
    """
    Return start_dir if it contains pyproject.toml, setup.cfg, or setup.py.

    NOTE: Does NOT traverse up, so a parent monorepo root is never picked.
    """
    start_dir = os.path.abspath(start_dir)
    for marker in ("pyproject.toml", "setup.cfg", "setup.py"):
        if os.path.exists(os.path.join(start_dir, marker)):
            return start_dir
    return None


def setup_sys_path_from_cwd() -> str | None:
    """
    If cwd contains pyproject.toml (not parent dirs), add cwd to sys.path.

    Returns cwd if it was added to sys.path, None otherwise.
    """
    cwd = os.getcwd()
    if find_project_root(cwd) and cwd not in sys.path:
        sys.path.insert(0, cwd)
        logger.debug(f"Added cwd to sys.path: {cwd}")
        return cwd
    return None


def _compute_synthetic_module_name(path: str) -> str:
    """Stable module name for a standalone file, under cronloop._dynamic."""
    realpath = os.path.realpath(path)
    hash_prefix = hashlib.sha256(realpath.encode()).hexdigest()[:12]
    return f"cronloop._dynamic.{hash_prefix}"


def import_file_path(file_path: str, module_name: str | None = None) -> Any:
    """
    Import a module from a file path.

    The file's parent directory is added to sys.path so sibling imports work.
    A file that is already imported is returned from sys.modules.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ImportError: If the module can't be loaded
    """
    file_path = os.path.realpath(file_path)

    if not os.path.exists(file_path):
        raise FileNotFoundError(f"Module file not found: {file_path}")

    for mod in list(sys.modules.values()):
        mod_file = getattr(mod, "__file__", None)
        if mod_file and os.path.realpath(mod_file) == file_path:
            return mod

    parent_dir = os.path.dirname(file_path)
    if parent_dir not in sys.path:
        sys.path.insert(0, parent_dir)

    if module_name is None:
        module_name = _compute_synthetic_module_name(file_path)

    spec = importlib.util.spec_from_file_location(module_name, file_path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Could not load module from path: {file_path}")

    mod = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = mod
    spec.loader.exec_module(mod)
    return mod


def parse_locator(locator: str) -> tuple[str, str]:
    """
    Split a locator into (module_path, attribute_name).

    - "app.jobs:cleanup" -> ("app.jobs", "cleanup")
    - "/path/to/jobs.py:cleanup" -> ("/path/to/jobs.py", "cleanup")
    """
    module_part, sep, attr = locator.rpartition(":")
    if not sep or not module_part or not attr:
        raise ConfigurationError(
            message=f"invalid task locator: '{locator}'",
            code=ErrorCode.TASK_INVALID_LOCATOR,
            notes=["a locator needs both a module and an attribute name"],
            help_text=(
                "use one of these formats:\n"
                "  app.jobs:cleanup          (dotted module path)\n"
                "  app/jobs.py:cleanup       (file path)"
            ),
        )
    return module_part, attr


def _is_file_path(path: str) -> bool:
    return path.endswith(".py") or os.path.sep in path or "/" in path


def resolve_task(locator: str) -> Callable[[], Any]:
    """Import the module named by `locator` and return its callable attribute."""
    module_path, attr_name = parse_locator(locator)

    if _is_file_path(module_path):
        if not module_path.endswith(".py"):
            module_path += ".py"
        module = import_file_path(module_path)
    else:
        try:
            module = importlib.import_module(module_path)
        except ModuleNotFoundError as e:
            raise ConfigurationError(
                message=f"module not found: {module_path}",
                code=ErrorCode.TASK_INVALID_LOCATOR,
                notes=[str(e), f"sys.path: {sys.path[:5]}..."],
                help_text=(
                    "ensure you are running from the correct directory\n"
                    "or set PYTHONPATH to include your project root"
                ),
            ) from e

    if not hasattr(module, attr_name):
        raise ConfigurationError(
            message=f"module '{module_path}' has no attribute '{attr_name}'",
            code=ErrorCode.TASK_INVALID_LOCATOR,
            help_text="check the attribute name after ':' in the locator",
        )

    task = getattr(module, attr_name)
    if not callable(task):
        raise ConfigurationError(
            message=f"'{attr_name}' in '{module_path}' is not callable",
            code=ErrorCode.TASK_NOT_CALLABLE,
            notes=[f"got {type(task).__name__}"],
            help_text="point the locator at a zero-argument function",
        )

    logger.debug(f"Resolved task '{attr_name}' from {module_path}")
    return task
