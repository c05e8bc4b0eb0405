"""
Comment Side Table.

The parser collaborator reports source comments separately from the tree.
Because nodes compare structurally, two distinct but equal subtrees would
collide in an ordinary dict, so the table is keyed by node identity.

When a filter replaces a node that carried comments (most often a whole class
turned into a module), it must either ``carry`` the comments to the
replacement or ``clear`` them, otherwise the printer would emit them twice or
in the wrong place.
"""

from typing import Dict, List, Tuple

from rails2js.core.node import Node


class CommentTable:
  """Identity-keyed mapping from nodes to their leading comment lines."""

  def __init__(self) -> None:
    # id -> (node, comments); holding the node keeps its id from being reused.
    self._entries: Dict[int, Tuple[Node, List[str]]] = {}

  def attach(self, node: Node, comments: List[str]) -> None:
    """Appends comment lines to ``node``."""
    existing = self._entries.get(id(node))
    if existing:
      existing[1].extend(comments)
    else:
      self._entries[id(node)] = (node, list(comments))

  def get(self, node: Node) -> List[str]:
    """Returns the comments attached to ``node`` (empty if none)."""
    entry = self._entries.get(id(node))
    return list(entry[1]) if entry else []

  def clear(self, node: Node) -> None:
    """Drops any comments attached to ``node``."""
    self._entries.pop(id(node), None)

  def carry(self, old: Node, new: Node) -> None:
    """Moves the comments of ``old`` onto its replacement ``new``."""
    if old is new:
      return
    entry = self._entries.pop(id(old), None)
    if entry:
      self.attach(new, entry[1])

  def __len__(self) -> int:
    return len(self._entries)

  def __contains__(self, node: Node) -> bool:
    return id(node) in self._entries
