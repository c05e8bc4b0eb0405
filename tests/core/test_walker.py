"""
Tests for the generic Walker.

Verifies:
1. Filters are transparent for kinds they have no hook for.
2. Synthesized kinds route to the hook of the kind they specialize.
3. Returning None from a hook drops a statement from a `begin`.
4. `map(&:sym)` is lowered only by walkers that opt in via the mixin.
5. The functional `walk` form.
"""

from rails2js.core.node import rebuild, s
from rails2js.core.sexp import read_sexp
from rails2js.core.walker import BlockPassLowering, Walker, walk


class Renamer(Walker):
  def on_lvar(self, node):
    return s("lvar", node.children[0].upper())


class SendCounter(Walker):
  def __init__(self):
    self.seen = []

  def on_send(self, node):
    self.seen.append(node.kind)
    return self.process_children(node)


class BlockCounter(Walker):
  def __init__(self):
    self.kinds = []

  def on_block(self, node):
    self.kinds.append(node.kind)
    return self.process_children(node)


class PutsDropper(Walker):
  def on_send(self, node):
    if node.children[0] is None and node.children[1] == "puts":
      return None
    return super().on_send(node)


def test_unhooked_tree_passes_through_unchanged():
  tree = read_sexp("(class (const nil :Foo) nil (def :bar (args) (send (ivar :@x) :+ (int 1))))")
  assert Walker().process(tree) is tree
  assert Renamer().process(tree) is tree


def test_only_changed_paths_are_rebuilt():
  tree = read_sexp("(begin (lvar :a) (int 1))")
  out = Renamer().process(tree)
  assert out == read_sexp("(begin (lvar :A) (int 1))")
  assert out.children[1] is tree.children[1]


def test_synthesized_kinds_route_to_base_hooks():
  counter = SendCounter()
  counter.process(read_sexp("(begin (await (lvar :a) :save) (csend (lvar :b) :name) (send nil :x))"))
  assert counter.seen == ["await", "csend", "send"]

  blocks = BlockCounter()
  blocks.process(read_sexp("(async_block (send nil :it (str \"x\")) (args) nil)"))
  assert blocks.kinds == ["async_block"]


def test_none_drops_statement_from_begin():
  tree = read_sexp('(begin (send nil :puts (str "x")) (int 1))')
  assert PutsDropper().process(tree) == s("begin", s("int", 1))


class Lowering(BlockPassLowering, Walker):
  pass


def test_base_walker_leaves_block_pass_alone():
  tree = read_sexp("(send (lvar :articles) :map (block_pass (sym :title)))")
  assert Walker().process(tree) is tree


def test_map_block_pass_is_lowered_by_mixin():
  tree = read_sexp("(send (lvar :articles) :map (block_pass (sym :title)))")
  expected = read_sexp("(block (send (lvar :articles) :map) (args (arg :item)) (send (lvar :item) :title))")
  assert Lowering().process(tree) == expected


def test_mixin_defers_other_calls_to_next_hook():
  tree = read_sexp("(send (lvar :articles) :each (block_pass (lvar :fn)))")
  assert Lowering().process(tree) is tree


def test_process_all_keeps_none():
  assert Walker().process_all([None, s("int", 1)]) == [None, s("int", 1)]


def test_functional_walk():
  class Visitor:
    def on_int(self, node, recur):
      return s("int", node.children[0] * 10)

    def on_array(self, node, recur):
      return rebuild(node, [recur(c) for c in reversed(node.children)])

  tree = read_sexp("(array (int 1) (int 2))")
  assert walk(tree, Visitor()) == read_sexp("(array (int 20) (int 10))")
