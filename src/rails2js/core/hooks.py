"""
Filter Registry and Dynamic Loader.

Filters are ``RewriterPass`` subclasses registered under a short name with the
``register_filter`` decorator. The built-in filters live in
``rails2js.filters`` and are imported lazily on first lookup; additional
filter modules can be loaded from external directories (configured through
``plugin_paths``).

Each filter declares an ``order``. When no explicit filter list is
configured, filters run in ascending order, which places producers of bus
facts (models) before their consumers.
"""

import importlib
import importlib.util
import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Type

from rails2js.core.rewriter.interface import RewriterPass

logger = logging.getLogger(__name__)

FilterClass = Type[RewriterPass]

_FILTERS: Dict[str, FilterClass] = {}
_FILTER_ORDER: Dict[str, int] = {}
_FILTERS_LOADED = False


class FilterNotFoundError(KeyError):
  """Raised when a configuration names a filter that is not registered."""


def register_filter(name: str, order: int = 100) -> Callable[[FilterClass], FilterClass]:
  """
  Class decorator registering a filter.

  Args:
      name: Unique filter name used in configuration (``model``, ``routes``...).
      order: Default execution rank; lower runs first.
  """

  def decorator(cls: FilterClass) -> FilterClass:
    cls.name = name
    _FILTERS[name] = cls
    _FILTER_ORDER[name] = order
    return cls

  return decorator


def get_filter(name: str) -> FilterClass:
  """
  Retrieves a registered filter class by name.
  Lazily loads the built-in filters if the registry has not been populated.

  Raises:
      FilterNotFoundError: If no filter is registered under ``name``.
  """
  if not _FILTERS_LOADED:
    load_filters()
  try:
    return _FILTERS[name]
  except KeyError:
    raise FilterNotFoundError(name) from None


def available_filters() -> List[str]:
  """Registered filter names in default execution order."""
  if not _FILTERS_LOADED:
    load_filters()
  return sorted(_FILTERS, key=lambda n: (_FILTER_ORDER.get(n, 100), n))


def build_filters(names: Optional[List[str]] = None) -> List[RewriterPass]:
  """
  Instantiates filters for a pipeline.

  Args:
      names: Explicit ordered list, or None for every registered filter.

  Returns:
      List[RewriterPass]: Fresh filter instances.
  """
  selected = names if names is not None else available_filters()
  return [get_filter(name)() for name in selected]


def clear_filters() -> None:
  """Resets the internal registry. Primarily for testing."""
  global _FILTERS_LOADED
  _FILTERS.clear()
  _FILTER_ORDER.clear()
  _FILTERS_LOADED = False


def load_filters(extra_dirs: Optional[List[Path]] = None) -> int:
  """
  Imports the built-in filters and, optionally, external filter modules.

  Args:
      extra_dirs: Additional directories whose ``.py`` files are imported.

  Returns:
      int: Number of registered filters after loading.
  """
  global _FILTERS_LOADED
  if not _FILTERS_LOADED:
    # Registration happens as a side effect of importing the package.
    import rails2js.filters  # noqa: F401

    _FILTERS_LOADED = True

  for ex_dir in extra_dirs or []:
    if ex_dir.exists() and ex_dir.is_dir():
      _import_from_dir(ex_dir)

  return len(_FILTERS)


def _import_from_dir(directory: Path) -> int:
  """Imports every python file of ``directory`` as an isolated module."""
  count = 0
  for item in sorted(directory.glob("*.py")):
    if item.name == "__init__.py":
      continue
    unique_name = f"rails2js_filter_{item.stem}_{item.stat().st_ino}"
    spec = importlib.util.spec_from_file_location(unique_name, item)
    if spec is None or spec.loader is None:
      continue
    mod = importlib.util.module_from_spec(spec)
    sys.modules[unique_name] = mod
    try:
      spec.loader.exec_module(mod)
    except Exception as e:
      sys.modules.pop(unique_name, None)
      logger.error("Failed to load filter module %s: %s", item.name, e)
      continue
    count += 1
  return count
