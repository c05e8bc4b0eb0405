"""
Generic Tree Walker.

Every filter is a :class:`Walker` subclass that overrides ``on_<kind>`` hooks
for the node kinds it cares about. Kinds without a hook are handled by the
default rule: process every child, then rebuild the node with the same kind.
A filter is therefore transparent for shapes it does not recognize.

Hooks own recursion for their node. When a hook inspects a node and finds a
shape it does not expect it must fall back to the default, usually by calling
``super().on_<kind>(node)`` or ``self.process_children(node)``, never by
raising.

Synthesized kinds route to the hook of the kind they specialize when they
have no hook of their own, so ``on_send`` also sees ``await`` nodes and
``on_block`` also sees ``async_block`` nodes.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence

from rails2js.core.node import Node, is_node, literal_value, rebuild, s

HOOK_ALIASES: Dict[str, str] = {
  "await": "send",
  "csend": "send",
  "autoreturn": "return",
  "async": "def",
  "defm": "def",
  "defget": "def",
  "asyncs": "defs",
  "defp": "defs",
  "async_block": "block",
}


class Walker:
  """
  Depth-first rewriter with per-kind hooks.

  Subclasses define ``on_<kind>(self, node) -> Node`` methods. Returning
  ``None`` from a hook removes a statement from its enclosing ``begin``.
  """

  def process(self, node: Any) -> Any:
    """
    Rewrites ``node`` through the matching hook or the default recursion.

    Args:
        node: A Node or a scalar. Scalars are returned unchanged.

    Returns:
        The rewritten value.
    """
    if not isinstance(node, Node):
      return node
    handler = self._handler_for(node.kind)
    if handler is None:
      return self.process_children(node)
    return handler(node)

  def _handler_for(self, kind: str) -> Optional[Callable[[Node], Any]]:
    handler = getattr(self, f"on_{kind}", None)
    if handler is None and kind in HOOK_ALIASES:
      handler = getattr(self, f"on_{HOOK_ALIASES[kind]}", None)
    return handler

  def process_children(self, node: Node) -> Node:
    """
    Default rule: process each child and rebuild with the same kind.

    The original node is returned when no child changed.
    """
    changed = False
    new_children = []
    for child in node.children:
      new_child = self.process(child)
      if new_child is not child:
        changed = True
      if new_child is None and node.kind == "begin" and child is not None:
        continue
      new_children.append(new_child)
    if not changed:
      return node
    return rebuild(node, new_children)

  def process_all(self, nodes: Sequence[Any]) -> List[Any]:
    """Processes a list of children, keeping ``None`` slots."""
    return [self.process(n) for n in nodes]

  def on_send(self, node: Node) -> Any:
    return self.process_children(node)


class BlockPassLowering:
  """
  Mixin for walkers that lower ``recv.map(&:name)`` into an explicit block.

  ``(send recv :map (block_pass (sym :name)))`` becomes
  ``(block (send recv :map) (args (arg :item)) (send (lvar :item) :name))``.
  Place it before the walker base so its ``on_send`` runs first; any other
  call continues to the next ``on_send`` in the MRO.
  """

  def on_send(self, node: Node) -> Any:
    children = node.children
    if node.kind == "send" and len(children) == 3 and is_node(children[2], "block_pass"):
      sym = children[2].children[0] if children[2].children else None
      method = literal_value(sym) if is_node(sym, "sym") else None
      if method is not None:
        block = s(
          "block",
          s("send", children[0], children[1]),
          s("args", s("arg", "item")),
          s("send", s("lvar", "item"), method),
        )
        return self.process(block)
    return super().on_send(node)


VisitorHook = Callable[[Node, Callable[[Any], Any]], Any]


def walk(node: Any, visitor: Any) -> Any:
  """
  Functional form of the walker contract.

  For each node, if ``visitor`` has an ``on_<kind>`` attribute it is called as
  ``hook(node, walk_fn)`` and its result is used; the hook decides whether and
  how to recurse, typically via ``walk_fn(child)`` then :func:`rebuild`.
  Otherwise all children are walked and the node is rebuilt.

  Args:
      node: The subtree (or scalar) to walk.
      visitor: Any object exposing ``on_<kind>`` callables.

  Returns:
      The rewritten subtree.
  """

  def recur(child: Any) -> Any:
    return walk(child, visitor)

  if not isinstance(node, Node):
    return node
  hook: Optional[VisitorHook] = getattr(visitor, f"on_{node.kind}", None)
  if hook is not None:
    return hook(node, recur)
  return rebuild(node, [recur(c) for c in node.children])
