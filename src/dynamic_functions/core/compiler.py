import os
import sys
import json
import uuid
import asyncio
import tempfile
import logging
import importlib.util
from importlib.machinery import SourceFileLoader
from types import ModuleType
from typing import Union

from dynamic_functions.core.schemas import FunctionModule

logger = logging.getLogger(__name__)

MODULE_NAME_PREFIX = "_dynamic_function_"
DEFAULT_EXPORT = "default"


class ModuleCompileError(ValueError):
    """Raised when source text cannot be turned into a valid function module."""


class _NoBytecodeLoader(SourceFileLoader):
    """Source loader that never writes `__pycache__` entries next to the temp file."""

    def set_data(self, path, data, *, _mode=0o666):
        return None


def _materialize_module_file(code: str, tmp_dir: Union[str, None] = None) -> str:
    """
    Write `code` to a uniquely named `.py` file and return its path.

    The source is encoded before the file exists, so text that is not valid
    UTF-8 (e.g. lone surrogates) never leaves a file behind. A failed write
    removes the file before re-raising.
    """
    data = code.encode("utf-8")
    f = tempfile.NamedTemporaryFile(
        "wb",
        suffix=".py",
        prefix="function_module_",
        dir=tmp_dir,
        delete=False,
    )
    try:
        with f:
            f.write(data)
    except BaseException:
        _release_module_file(f.name)
        raise
    return f.name


def _release_module_file(path: str) -> None:
    """Remove the temporary module file."""
    try:
        os.remove(path)
    except FileNotFoundError:
        logger.warning(f"⚠️ Temporary module file already gone: {path}")


def _load_module(path: str) -> ModuleType:
    """Execute the module body at `path` once and return the resulting module."""
    module_name = f"{MODULE_NAME_PREFIX}{uuid.uuid4().hex}"
    loader = _NoBytecodeLoader(module_name, path)
    spec = importlib.util.spec_from_file_location(module_name, path, loader=loader)
    if spec is None or spec.loader is None:
        raise ImportError(f"Could not create module spec for {path}")

    module = importlib.util.module_from_spec(spec)
    # Registered only while the body runs (dataclasses and friends look it up)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    finally:
        sys.modules.pop(module_name, None)
    return module


def _validate_exports(module: ModuleType) -> FunctionModule:
    """
    Check the module's exports, in order, and build a `FunctionModule`.

    Raises:
        ValueError: Naming the first missing or mistyped export.
    """
    name = getattr(module, "name", None)
    if not isinstance(name, str):
        raise ValueError("missing `name` export")

    description = getattr(module, "description", None)
    if not isinstance(description, str):
        raise ValueError("missing `description` export")

    parameters = getattr(module, "parameters", None)
    if parameters is None:
        raise ValueError("missing `parameters` export")
    try:
        json.dumps(parameters)  # Must be storable and exportable as-is
    except (TypeError, ValueError) as exc:
        raise ValueError("`parameters` export must be JSON serializable") from exc

    fn = getattr(module, DEFAULT_EXPORT, None)
    if not callable(fn):
        raise ValueError("missing default function export")

    return FunctionModule(
        name=name, description=description, parameters=parameters, callable=fn
    )


async def parse_module(code: str, tmp_dir: Union[str, None] = None) -> FunctionModule:
    """
    Turn raw source text into a validated `FunctionModule`.

    The text is written to a temporary `.py` file, loaded as a throwaway
    module (its top-level code runs exactly once) and checked for the
    `name`, `description`, `parameters` and `default` exports. The
    temporary file is removed on every exit path. Writing, loading and
    removing the file all run in a worker thread.

    Args:
        code (str): Untrusted module source.
        tmp_dir (Union[str, None]): Directory for the temporary file. Defaults
            to the system temp dir.

    Returns:
        FunctionModule: The compiled module.

    Raises:
        ModuleCompileError: If the text fails to load or an export is missing.
    """
    path = None
    try:
        path = await asyncio.to_thread(_materialize_module_file, code, tmp_dir)
        module = await asyncio.to_thread(_load_module, path)
        return _validate_exports(module)
    except (Exception, SystemExit) as err:
        logger.warning(f"⚠️ Unable to parse module: {err!r}")
        raise ModuleCompileError(f"Unable to parse module: {err}") from err
    finally:
        if path is not None:
            await asyncio.to_thread(_release_module_file, path)
