"""
Base Filter Implementation.

This module provides ``FilterBase``, the foundation of every registered
filter. It joins the generic :class:`~rails2js.core.walker.Walker` (per-kind
hooks, default pass-through) with the pipeline's
:class:`~rails2js.core.rewriter.RewriterPass` contract, and handles:

1.  **Context Binding**: the rewriter context is bound for the duration of
    one ``transform`` call and released afterwards, so a filter instance keeps
    no state between files.
2.  **Unit Lifecycle**: ``unit_scope`` enters a fresh unit and always exits
    it, even when a hook raises.
3.  **Import Paths**: module specifiers for generated imports, chosen by the
    configured import mode.
4.  **Comment Carrying**: moving parser comments onto replacement nodes.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional

from rails2js.core.builders import import_node
from rails2js.core.coloring import AwaitColorer
from rails2js.core.context import RewriterContext, UnitContext
from rails2js.core.inflector import underscore
from rails2js.core.node import Node
from rails2js.core.rewriter.interface import RewriterPass
from rails2js.core.walker import Walker
from rails2js.enums import ImportMode, UnitKind

logger = logging.getLogger(__name__)

# Runtime library specifiers per import mode.
LIBRARY_MODULES: Dict[ImportMode, Dict[str, str]] = {
  ImportMode.EJECT: {
    "rails": "../../lib/rails.js",
    "active_storage": "../../lib/active_storage.js",
    "url_helpers": "../../lib/url_helpers.js",
    "test_helpers": "../lib/test_helpers.js",
  },
  ImportMode.VIRTUAL: {
    "rails": "juntos:rails",
    "active_storage": "juntos:active-storage",
    "url_helpers": "juntos:url-helpers",
    "test_helpers": "juntos:test-helpers",
  },
}


class FilterBase(Walker, RewriterPass):
  """
  Walker-backed rewriter pass with context plumbing.

  Subclasses override ``on_<kind>`` hooks and read ``self.context`` /
  ``self.unit`` inside them.
  """

  name = ""

  def __init__(self) -> None:
    self.context: Optional[RewriterContext] = None

  def transform(self, tree: Node, context: RewriterContext) -> Node:
    self.context = context
    try:
      return self.process(tree)
    finally:
      self.context = None

  @property
  def unit(self) -> Optional[UnitContext]:
    return self.context.unit if self.context is not None else None

  @contextmanager
  def unit_scope(self, name: str, kind: UnitKind, superclass: Optional[str] = None) -> Iterator[UnitContext]:
    """
    Enters a structural unit with fresh state and always leaves it.

    Yields:
        UnitContext: The new unit.
    """
    unit = self.context.enter_unit(name, kind, superclass)
    self.context.tracer.log_unit(name, kind.value, self.name)
    logger.debug("%s: entering %s '%s'", self.name, kind.value, name)
    try:
      yield unit
    finally:
      self.context.exit_unit()

  def colorer(self, extra_models: Iterable[str] = (), mark_functions: bool = False) -> AwaitColorer:
    return AwaitColorer.for_context(self.context, extra_models, mark_functions=mark_functions)

  def color(self, node: Any, mark_functions: bool = False) -> Any:
    """Await-colors a subtree with the current context's facts."""
    return self.colorer(mark_functions=mark_functions).process(node)

  def library_path(self, key: str) -> str:
    return LIBRARY_MODULES[self.context.import_mode][key]

  def model_path(self, model: str, from_dir: str = "..") -> str:
    """
    Specifier for importing a model.

    The bus's recorded file path is not used: generated files mirror the
    source tree, so the conventional location is always correct.
    """
    if self.context.import_mode == ImportMode.VIRTUAL:
      return "juntos:models"
    return f"{from_dir}/models/{underscore(model.split('::')[-1])}.js"

  def imports_for_models(self, models: Iterable[str], from_dir: str = "..") -> List[Node]:
    """One import per specifier; in virtual mode every model shares one import."""
    grouped: Dict[str, List[str]] = {}
    for model in models:
      grouped.setdefault(self.model_path(model, from_dir), []).append(model.split("::")[-1])
    return [import_node(path, names) for path, names in grouped.items()]

  def view_path(self, name: str, from_dir: str = "..") -> str:
    """Specifier of a compiled view module (``articles``, ``messages/_message``)."""
    if self.context.import_mode == ImportMode.VIRTUAL:
      return f"juntos:views/{name}"
    return f"{from_dir}/views/{name}.js"

  def carry_comments(self, old: Node, new: Node) -> Node:
    """Moves parser comments of ``old`` onto its replacement ``new``."""
    if self.context is not None and old is not new:
      self.context.comments.carry(old, new)
    return new

  def referenced_models(self, node: Any, exclude: Iterable[str] = ()) -> List[str]:
    """
    Model constants referenced in ``node`` that need an import.

    Only names the bus knows as models (or the unit recorded as referenced)
    qualify, so plain constants such as ``Time`` never produce imports.
    """
    skip = set(exclude)
    recorded = self.unit.referenced_names if self.unit is not None else set()
    found = []
    for name in const_references(node):
      if name in skip or name in found:
        continue
      if name in recorded or self.context.bus.is_model(name):
        found.append(name)
    return found


def const_references(node: Any, found: Optional[List[str]] = None) -> List[str]:
  """Top-level constant names in ``node``, first-seen order."""
  found = [] if found is None else found
  if not isinstance(node, Node):
    return found
  if node.kind == "const" and node.children[0] is None:
    if node.children[1] not in found:
      found.append(node.children[1])
    return found
  for child in node.children:
    const_references(child, found)
  return found
