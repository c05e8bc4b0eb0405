"""
Syntax Tree Node Primitive.

This module defines the immutable ``Node`` used by every stage of the
rewriting pipeline. A node is a kind tag plus an ordered tuple of children,
where each child is either another ``Node`` or a scalar (``str`` for names,
symbols and string payloads; ``int``/``float`` for numbers; ``None`` for an
absent slot such as a receiver-less call).

Nodes never change after construction. Rewrites build new nodes and may share
unchanged subtrees with the input, so consumers must never mutate children.

Print hints
-----------

Two boolean hints tell the printer how to render call-shaped nodes whose
shape alone is ambiguous in the target language:

- ``force_call``: always render with parentheses (``a.first()``).
- ``force_property``: always render as property access (``Card.closed``).

Hints take part in equality so that a rewrite which only flips a hint is
observable.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class Node:
  """
  An immutable syntax tree node.

  Attributes:
      kind: Syntactic form tag (e.g. ``send``, ``block``, ``class``).
      children: Ordered child nodes and scalars.
      force_call: Printer hint to emit call syntax.
      force_property: Printer hint to emit property-access syntax.
      location: Optional ``(line, column)`` from the parser. Ignored by equality.
  """

  kind: str
  children: Tuple[Any, ...] = ()
  force_call: bool = False
  force_property: bool = False
  location: Optional[Tuple[int, int]] = field(default=None, compare=False, repr=False)

  def __post_init__(self) -> None:
    if not isinstance(self.children, tuple):
      object.__setattr__(self, "children", tuple(self.children))

  def updated(self, kind: Optional[str] = None, children: Optional[Sequence[Any]] = None) -> "Node":
    """
    Returns a copy with a new kind and/or children, keeping hints and location.

    Args:
        kind: Replacement kind, or None to keep the current one.
        children: Replacement children, or None to keep the current ones.

    Returns:
        Node: The new node (``self`` if nothing changed).
    """
    new_kind = self.kind if kind is None else kind
    new_children = self.children if children is None else tuple(children)
    if new_kind == self.kind and new_children == self.children:
      return self
    return Node(new_kind, new_children, self.force_call, self.force_property, self.location)

  def with_hints(self, force_call: Optional[bool] = None, force_property: Optional[bool] = None) -> "Node":
    """Returns a copy with the given print hints replaced."""
    return Node(
      self.kind,
      self.children,
      self.force_call if force_call is None else force_call,
      self.force_property if force_property is None else force_property,
      self.location,
    )

  def __len__(self) -> int:
    return len(self.children)

  def __getitem__(self, index: int) -> Any:
    return self.children[index]


def s(kind: str, *children: Any) -> Node:
  """Convenience constructor: ``s("send", None, "puts", s("str", "hi"))``."""
  return Node(kind, tuple(children))


def rebuild(node: Node, children: Sequence[Any]) -> Node:
  """Returns a node with the same kind as ``node`` and the given children."""
  return node.updated(children=children)


def retag(node: Node, kind: str) -> Node:
  """Returns a node with the given kind and the same children as ``node``."""
  return node.updated(kind=kind)


def is_node(value: Any, *kinds: str) -> bool:
  """
  Checks whether ``value`` is a Node, optionally of one of ``kinds``.

  Args:
      value: Any child value.
      *kinds: Accepted kinds. Empty means any kind.

  Returns:
      bool: True on match.
  """
  if not isinstance(value, Node):
    return False
  return not kinds or value.kind in kinds


def child_nodes(node: Node) -> List[Node]:
  """Returns only the Node children of ``node``."""
  return [c for c in node.children if isinstance(c, Node)]


def const_name(node: Any) -> Optional[str]:
  """
  Resolves a constant reference to its dotted Ruby name.

  ``(const nil :Article)`` gives ``"Article"`` and
  ``(const (const nil :ActiveRecord) :Base)`` gives ``"ActiveRecord::Base"``.
  A leading ``(cbase)`` is dropped.

  Args:
      node: Candidate constant node.

  Returns:
      Optional[str]: The name, or None if ``node`` is not a constant path.
  """
  if not is_node(node, "const"):
    return None
  scope, name = node.children[0], node.children[1]
  if scope is None or is_node(scope, "cbase"):
    return name
  prefix = const_name(scope)
  if prefix is None:
    return None
  return f"{prefix}::{name}"


def is_simple_const(node: Any, name: Optional[str] = None) -> bool:
  """True for a top-level ``(const nil :Name)`` (optionally with that name)."""
  if not is_node(node, "const") or node.children[0] is not None:
    return False
  return name is None or node.children[1] == name


def literal_value(node: Any) -> Any:
  """
  Extracts the scalar payload of ``sym``/``str``/``int``/``float`` nodes.

  Returns:
      The payload, or None for any other shape.
  """
  if is_node(node, "sym", "str", "int", "float"):
    return node.children[0]
  return None


def is_send(node: Any, method: Optional[str] = None) -> bool:
  """True for ``send``/``csend``/``await`` call nodes, optionally with ``method``."""
  if not is_node(node, "send", "csend", "await"):
    return False
  if len(node.children) < 2:
    return False
  return method is None or node.children[1] == method


def hash_pairs(node: Any) -> List[Tuple[Any, Node]]:
  """
  Returns ``(key, value)`` pairs of a ``hash`` node.

  Symbol and string keys are unwrapped to their scalar; other keys stay nodes.
  Non-``pair`` children (e.g. ``kwsplat``) are skipped.
  """
  if not is_node(node, "hash"):
    return []
  pairs = []
  for pair in node.children:
    if is_node(pair, "pair"):
      key, value = pair.children
      scalar = literal_value(key) if is_node(key, "sym", "str") else None
      pairs.append((scalar if scalar is not None else key, value))
  return pairs


def hash_get(node: Any, key: str) -> Optional[Node]:
  """Looks up a symbol/string key in a ``hash`` node."""
  for k, v in hash_pairs(node):
    if k == key:
      return v
  return None


def options_hash(args: Iterable[Any]) -> Optional[Node]:
  """Returns the trailing options ``hash`` of an argument list, if any."""
  args = list(args)
  if args and is_node(args[-1], "hash"):
    return args[-1]
  return None


def body_statements(body: Any) -> List[Any]:
  """
  Flattens a body slot into a statement list.

  ``None`` is empty, a ``begin`` contributes its children, anything else is a
  single statement.
  """
  if body is None:
    return []
  if is_node(body, "begin"):
    return list(body.children)
  return [body]


def make_body(statements: Sequence[Any]) -> Optional[Node]:
  """Inverse of :func:`body_statements`."""
  stmts = [st for st in statements if st is not None]
  if not stmts:
    return None
  if len(stmts) == 1:
    return stmts[0]
  return s("begin", *stmts)


def sym_value(node: Any) -> Optional[str]:
  """Payload of a ``sym`` node, else None."""
  if is_node(node, "sym"):
    return node.children[0]
  return None


def is_call(node: Any, recv_kind: Optional[str] = None, method: Optional[str] = None) -> bool:
  """
  Matches a call by receiver kind and method name.

  Args:
      node: Candidate node.
      recv_kind: Required receiver kind; ``"nil"`` requires no receiver.
      method: Required method name.
  """
  if not is_send(node, method):
    return False
  if recv_kind is None:
    return True
  receiver = node.children[0]
  if recv_kind == "nil":
    return receiver is None
  return is_node(receiver, recv_kind)
