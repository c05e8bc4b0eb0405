"""
Attribute-storage to local-binding substitution.

When a method body is lowered into a free function, reads and writes of
instance-scoped state (``@article``) become plain local variables
(``article``). The substitution is structural: every ``ivar``/``ivasgn``
whose name is in the binding set is replaced, nothing else changes.
"""

from typing import Any, Iterable, List, Optional, Set

from rails2js.core.node import Node, s
from rails2js.core.walker import Walker


def ivar_name(raw: str) -> str:
  """``@article`` -> ``article``."""
  return raw[1:] if raw.startswith("@") else raw


class LocalBindingRewriter(Walker):
  """
  Replaces instance-variable references with locals.

  Args:
      names: Bare names (without ``@``) to substitute, or None for all.
  """

  def __init__(self, names: Optional[Iterable[str]] = None):
    self.names: Optional[Set[str]] = set(names) if names is not None else None

  def _bound(self, raw: str) -> bool:
    return self.names is None or ivar_name(raw) in self.names

  def on_ivar(self, node: Node) -> Node:
    if not self._bound(node.children[0]):
      return node
    return node.updated(kind="lvar", children=[ivar_name(node.children[0])])

  def on_ivasgn(self, node: Node) -> Node:
    processed = self.process_children(node)
    if not self._bound(node.children[0]):
      return processed
    return processed.updated(kind="lvasgn", children=[ivar_name(node.children[0]), *processed.children[1:]])


def localize(node: Any, names: Optional[Iterable[str]] = None) -> Any:
  """Applies :class:`LocalBindingRewriter` to a subtree."""
  return LocalBindingRewriter(names).process(node)


def instance_variables(node: Any) -> List[str]:
  """Every instance variable read or written in ``node``, ``@`` stripped, first-seen order."""
  found: List[str] = []
  _scan(node, ("ivar", "ivasgn"), found)
  return found


def assigned_locals(node: Any) -> List[str]:
  """Local variable names assigned anywhere in ``node``."""
  found: List[str] = []
  _scan(node, ("lvasgn",), found)
  return found


def _scan(node: Any, kinds: tuple, found: List[str]) -> None:
  if not isinstance(node, Node):
    return
  if node.kind in kinds and node.children:
    name = ivar_name(node.children[0])
    if name not in found:
      found.append(name)
  for child in node.children:
    _scan(child, kinds, found)


def rename_self(node: Any, replacement: Node) -> Any:
  """Replaces every ``(self)`` in ``node`` with ``replacement``."""
  if not isinstance(node, Node):
    return node
  if node.kind == "self":
    return replacement
  new_children = [rename_self(c, replacement) for c in node.children]
  return node.updated(children=new_children)


def record_param(name: str = "$record") -> Node:
  return s("lvar", name)
