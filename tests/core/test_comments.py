"""
Tests for the identity-keyed comment side table.
"""

from rails2js.core.comments import CommentTable
from rails2js.core.node import s


def test_identity_keying():
  """
  Scenario: Two structurally equal nodes.
  Expectation: Comments attached to one are not visible through the other.
  """
  table = CommentTable()
  first = s("int", 1)
  twin = s("int", 1)
  assert first == twin

  table.attach(first, ["one"])
  assert table.get(first) == ["one"]
  assert table.get(twin) == []
  assert first in table
  assert twin not in table


def test_attach_appends():
  table = CommentTable()
  node = s("nil")
  table.attach(node, ["a"])
  table.attach(node, ["b"])
  assert table.get(node) == ["a", "b"]
  assert len(table) == 1


def test_carry_and_clear():
  table = CommentTable()
  old, new = s("class"), s("module")
  table.attach(old, ["doc"])
  table.carry(old, new)
  assert table.get(old) == []
  assert table.get(new) == ["doc"]

  table.carry(new, new)
  assert table.get(new) == ["doc"]

  table.clear(new)
  assert len(table) == 0


def test_get_returns_copy():
  table = CommentTable()
  node = s("nil")
  table.attach(node, ["a"])
  table.get(node).append("mutated")
  assert table.get(node) == ["a"]
