"""
Node construction shorthands shared by the filters.

Target-side shapes that every filter synthesizes (property reads on ``self``,
setter calls, module imports, literal tables) are built here so each filter
spells them the same way.
"""

from typing import Any, Dict, Iterable, Optional

from rails2js.core.node import Node, s


def prop(receiver: Any, name: str) -> Node:
  """Property read: ``receiver.name`` (never rendered with parentheses)."""
  return s("send", receiver, name).with_hints(force_property=True)


def call(receiver: Any, name: str, *args: Any) -> Node:
  """Method call: ``receiver.name(args)`` (always rendered with parentheses)."""
  return s("send", receiver, name, *args).with_hints(force_call=True)


def self_prop(name: str) -> Node:
  return prop(s("self"), name)


def assign_attr(receiver: Any, name: str, value: Any) -> Node:
  """Attribute write: ``receiver.name = value``."""
  return s("send", receiver, f"{name}=", value)


def self_assign(name: str, value: Any) -> Node:
  return assign_attr(s("self"), name, value)


def const(name: str) -> Node:
  """Top-level constant reference; ``A::B`` builds the nested path."""
  node: Optional[Node] = None
  for part in name.split("::"):
    node = s("const", node, part)
  return node


def lvar(name: str) -> Node:
  return s("lvar", name)


def literal(value: Any) -> Node:
  """Wraps a Python scalar in the matching literal node; Nodes pass through."""
  if isinstance(value, Node):
    return value
  if value is None:
    return s("nil")
  if value is True:
    return s("true")
  if value is False:
    return s("false")
  if isinstance(value, int):
    return s("int", value)
  if isinstance(value, float):
    return s("float", value)
  if isinstance(value, (list, tuple)):
    return s("array", *[literal(v) for v in value])
  if isinstance(value, dict):
    return hash_of(value)
  return s("str", str(value))


def hash_of(entries: Dict[str, Any]) -> Node:
  """Symbol-keyed hash literal from an ordered mapping."""
  return s("hash", *[s("pair", s("sym", k), literal(v)) for k, v in entries.items()])


def import_node(path: str, names: Iterable[str]) -> Node:
  """Named import: ``(import "path" "A" "B")``."""
  return s("import", path, *names)


def export_node(node: Node) -> Node:
  return s("export", node)


def await_expr(node: Any) -> Node:
  """Explicit await of an arbitrary expression."""
  return s("send", None, "await", node)


def arrow(params: Iterable[str], body: Any, is_async: bool = False) -> Node:
  """Closure literal ``(params) => body``; ``async`` variant when requested."""
  node = s("block", s("send", None, "proc"), s("args", *[s("arg", p) for p in params]), body)
  return node.updated(kind="async_block") if is_async else node


def raw(text: str) -> Node:
  """Verbatim target-language snippet."""
  return s("jsraw", text)
