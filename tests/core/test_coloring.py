"""
Tests for await coloring.

Verifies:
1. A model-rooted query chain carries exactly one await, on its outermost call.
2. Record mutations and association proxy calls are awaited.
3. Closures whose bodies suspend become async, except reserved test forms.
4. Scope references get property or call syntax from declared facts.
5. Conservative fallbacks when the bus has no facts.
"""

from conftest import find_all

from rails2js.core.coloring import (
  AwaitColorer,
  ModelOracle,
  await_node,
  color,
  contains_await,
  is_await,
  propagate_async,
  strip_await,
)
from rails2js.core.metadata import ControllerFacts, ModelFacts, ScopeRecord
from rails2js.core.node import s
from rails2js.core.sexp import read_sexp


def _awaits(tree):
  return find_all(tree, is_await)


def test_chain_gets_single_outer_await(context):
  """
  Scenario: `Article.where(x).order(y).first`.
  Expectation: Only the terminal `first` is awaited; inner links stay lazy.
  """
  tree = read_sexp("(send (send (send (const nil :Article) :where (lvar :x)) :order (lvar :y)) :first)")
  out = color(tree, context)
  assert out == read_sexp("(await! (send (send (const nil :Article) :where (lvar :x)) :order (lvar :y)) :first)")
  assert len(_awaits(out)) == 1


def test_recoloring_a_chain_is_stable(context):
  tree = read_sexp("(send (send (const nil :Article) :where (lvar :x)) :count)")
  once = color(tree, context)
  assert color(once, context) == once


def test_model_terminal_call(context):
  out = color(read_sexp("(send (const nil :Article) :find (int 1))"), context)
  assert out == read_sexp("(await! (const nil :Article) :find (int 1))")


def test_instance_mutation(context):
  out = color(read_sexp("(send (ivar :@article) :save)"), context)
  assert out == read_sexp("(await! (ivar :@article) :save)")


def test_builder_only_chain_is_not_awaited(context):
  tree = read_sexp("(send (send (const nil :Article) :includes (sym :comments)) :limit (int 5))")
  assert _awaits(color(tree, context)) == []


def test_non_model_constants_are_not_awaited(context, bus):
  bus.register(ControllerFacts(name="Report"))
  for source in ("(send (const nil :ENV) :first)", "(send (const nil :Report) :count)"):
    tree = read_sexp(source)
    assert color(tree, context) == tree


def test_controller_constants_are_never_models(context):
  tree = read_sexp("(send (const nil :ArticlesController) :create (send nil :context))")
  assert color(tree, context) == tree


def test_unknown_constant_is_treated_as_model_and_logged(context):
  color(read_sexp("(begin (send (const nil :Widget) :all) (send (const nil :Widget) :count))"), context)
  misses = [e for e in context.tracer.export() if e["type"] == "bus_miss"]
  assert len(misses) == 1
  assert misses[0]["metadata"]["fallback"] == "treated as model"


def test_association_proxy_call(context):
  out = color(read_sexp("(send (send (lvar :article) :comments) :count)"), context)
  assert out == read_sexp("(await! (send (lvar :article) :comments) :count)")


def test_singular_accessor_without_facts_is_not_awaited(context):
  tree = read_sexp("(send (send (lvar :article) :author) :count)")
  assert color(tree, context) == tree


def test_plural_heuristic_over_colors_non_associations(context):
  """
  Scenario: A plural accessor that is really a plain attribute (`settings`).
  Expectation: Without bus facts it is conservatively treated as an association.
  """
  out = color(read_sexp("(send (send (lvar :user) :settings) :first)"), context)
  assert len(_awaits(out)) == 1


def test_indexing_is_never_an_association(context):
  tree = read_sexp("(send (send (lvar :rows) :[] (int 0)) :count)")
  assert color(tree, context) == tree


def test_closure_becomes_async(context):
  tree = read_sexp("(block (send (lvar :articles) :each) (args (arg :a)) (send (lvar :a) :save))")
  out = color(tree, context)
  assert out.kind == "async_block"
  assert out.children[2] == read_sexp("(await! (lvar :a) :save)")


def test_reserved_test_blocks_stay_sync(context):
  tree = read_sexp('(block (send nil :it (str "saves")) (args) (send (lvar :a) :save))')
  out = color(tree, context)
  assert out.kind == "block"
  assert is_await(out.children[2])


def test_nested_function_scope_does_not_make_outer_async():
  inner = s("async", "go", s("args"), s("await", s("lvar", "a"), "save"))
  assert not contains_await(s("begin", inner))
  assert not contains_await(inner)
  block = s("block", s("send", s("lvar", "xs"), "each"), s("args"), s("begin", inner))
  assert propagate_async(block) is block


def test_nested_async_closure_does_not_make_outer_block_async(context):
  tree = read_sexp(
    "(block (send (lvar :groups) :each) (args (arg :g))"
    " (block (send (lvar :g) :each) (args (arg :a)) (send (lvar :a) :save)))"
  )
  out = color(tree, context)
  assert out.kind == "block"
  inner = out.children[2]
  assert inner.kind == "async_block"
  assert inner.children[2] == read_sexp("(await! (lvar :a) :save)")


def test_zero_param_scope_is_awaited_property(context, bus):
  bus.register(ModelFacts(name="Article", scopes=[ScopeRecord(name="published")]))
  out = color(read_sexp("(send (const nil :Article) :published)"), context)
  assert out == read_sexp("(await. (const nil :Article) :published)")


def test_parameterized_scope_in_chain_is_a_call(context, bus):
  bus.register(ModelFacts(name="Article", scopes=[ScopeRecord(name="recent", params=["n"])]))
  out = color(read_sexp("(send (send (const nil :Article) :recent (int 5)) :first)"), context)
  assert out == read_sexp("(await! (send! (const nil :Article) :recent (int 5)) :first)")


def test_parameterized_scope_without_arguments_is_a_call(context, bus):
  bus.register(ModelFacts(name="Article", scopes=[ScopeRecord(name="recent", params=["n"])]))
  out = color(read_sexp("(lvasgn :xs (send (const nil :Article) :recent))"), context)
  assert out == read_sexp("(lvasgn :xs (send! (const nil :Article) :recent))")
  assert out.children[1].force_call


def test_explicit_await_is_not_doubled(context):
  out = color(read_sexp("(send nil :await (send (lvar :a) :save))"), context)
  assert len(_awaits(out)) == 1
  assert out.children[2].kind == "send"


def test_mark_functions(context):
  tree = read_sexp("(def :publish (args) (send (lvar :a) :save))")
  assert color(tree, context).kind == "def"
  assert color(tree, context, mark_functions=True).kind == "async"


def test_extra_models_and_oracle(bus):
  oracle = ModelOracle(bus, extra_models=["lowercase_model"])
  assert oracle.is_model("lowercase_model")
  assert not oracle.is_model("Rails")
  assert not oracle.is_model(None)
  colorer = AwaitColorer(oracle)
  assert colorer.classify(read_sexp("(send (lvar :a) :update (hash))")) == "instance"
  assert colorer.classify(read_sexp("(send (lvar :a) :title)")) is None


def test_await_helpers():
  call = s("send", s("lvar", "a"), "save")
  awaited = await_node(call)
  assert awaited.kind == "await"
  assert await_node(awaited) is awaited
  assert strip_await(awaited).kind == "send"

  wrapped = await_node(s("lvar", "promise"))
  assert wrapped == s("send", None, "await", s("lvar", "promise"))
  assert strip_await(wrapped) == s("lvar", "promise")
