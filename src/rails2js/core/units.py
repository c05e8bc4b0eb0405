"""
Structural unit detection.

Classifies a parsed source file by the construct it defines so the engine can
order a whole-program run (models publish facts before controllers and tests
consume them) and report what each file was recognized as.
"""

from pathlib import PurePosixPath
from typing import Any, Optional, Tuple

from rails2js.core.node import Node, body_statements, const_name, is_node
from rails2js.enums import UnitKind

MODEL_SUPERCLASSES = frozenset(["ApplicationRecord", "ActiveRecord::Base"])
BUFFER_NAMES = frozenset(["_erbout", "_buf"])

# Whole-program run order; lower runs first.
UNIT_ORDER = {
  UnitKind.MODEL: 0,
  UnitKind.ROUTES: 1,
  UnitKind.CONTROLLER: 2,
  UnitKind.VIEW: 3,
  UnitKind.SEEDS: 4,
  UnitKind.TEST: 5,
  UnitKind.OTHER: 6,
}


def is_model_class(node: Any) -> bool:
  if not is_node(node, "class"):
    return False
  return const_name(node.children[1]) in MODEL_SUPERCLASSES


def is_controller_class(node: Any) -> bool:
  if not is_node(node, "class"):
    return False
  name = const_name(node.children[0]) or ""
  parent = const_name(node.children[1]) or ""
  return name.endswith("Controller") and parent.endswith("Controller")


def is_test_class(node: Any) -> bool:
  if not is_node(node, "class"):
    return False
  parent = const_name(node.children[1]) or ""
  return parent.endswith("TestCase") or parent.endswith("Test")


def is_routes_block(node: Any) -> bool:
  """``Rails.application.routes.draw do ... end``."""
  if not is_node(node, "block"):
    return False
  call = node.children[0]
  if not (is_node(call, "send") and call.children[1] == "draw"):
    return False
  routes = call.children[0]
  return is_node(routes, "send") and routes.children[1] == "routes"


def is_seeds_module(node: Any) -> bool:
  return is_node(node, "module") and const_name(node.children[0]) == "Seeds"


def is_template_program(node: Any) -> bool:
  """A compiled template starts by assigning its output buffer."""
  stmts = body_statements(node)
  first = stmts[0] if stmts else None
  return is_node(first, "lvasgn") and first.children[0] in BUFFER_NAMES


def _top_level(tree: Any):
  for stmt in body_statements(tree):
    # Unwrap `module Foo; class Bar...` namespaces one level deep.
    if is_node(stmt, "module") and not is_seeds_module(stmt):
      for inner in body_statements(stmt.children[1]):
        yield inner
    yield stmt


def detect_unit(tree: Any, path: Optional[str] = None) -> Tuple[UnitKind, Optional[str]]:
  """
  Classifies a file.

  Args:
      tree: Root node of the parsed file.
      path: Source path, used as a tie-breaker (``*_test.rb``, ``app/views``).

  Returns:
      Tuple of the unit kind and the unit name (class/module name, or the
      file stem for views).
  """
  if not isinstance(tree, Node):
    return UnitKind.OTHER, None
  name_from_path = PurePosixPath(path).name.split(".")[0] if path else None

  if is_template_program(tree):
    return UnitKind.VIEW, name_from_path

  for stmt in _top_level(tree):
    if is_model_class(stmt):
      return UnitKind.MODEL, const_name(stmt.children[0])
    if is_controller_class(stmt):
      return UnitKind.CONTROLLER, const_name(stmt.children[0])
    if is_test_class(stmt):
      return UnitKind.TEST, const_name(stmt.children[0])
    if is_routes_block(stmt):
      return UnitKind.ROUTES, "routes"
    if is_seeds_module(stmt):
      return UnitKind.SEEDS, "Seeds"

  if path and (path.endswith("_test.rb") or path.endswith("_test.sexp") or path.endswith("_spec.rb")):
    return UnitKind.TEST, name_from_path
  return UnitKind.OTHER, name_from_path


def run_order(kind: UnitKind) -> int:
  return UNIT_ORDER.get(kind, len(UNIT_ORDER))
