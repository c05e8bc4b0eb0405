"""
Tests for the seeds filter.
"""

from rails2js.core.node import s
from rails2js.core.sexp import read_sexp

SEEDS = """
(module (const nil :Seeds)
  (defs (self) :run (args)
    (begin
      (send (const nil :Article) :create! (hash (pair (sym :title) (str "Hello"))))
      (send (const nil :Comment) :destroy_all))))
"""


def test_run_becomes_async_and_models_are_imported(run_filter):
  out = run_filter("seeds", SEEDS, path="db/seeds.rb")
  assert list(out.children[:2]) == [
    s("import", "../app/models/article.js", "Article"),
    s("import", "../app/models/comment.js", "Comment"),
  ]
  exported = out.children[-1]
  assert exported.kind == "export"
  module = exported.children[0]
  assert module.kind == "module"
  run = module.children[1]
  assert run.kind == "asyncs"
  assert run.children[3] == read_sexp(
    """
    (begin
      (await! (const nil :Article) :create! (hash (pair (sym :title) (str "Hello"))))
      (await! (const nil :Comment) :destroy_all))
    """
  )


def test_virtual_mode_shares_one_import(run_filter):
  out = run_filter("seeds", SEEDS, import_mode="virtual")
  assert out.children[0] == s("import", "juntos:models", "Article", "Comment")


def test_module_without_run_passes_through(run_filter):
  tree = read_sexp("(module (const nil :Seeds) (defs (self) :other (args) nil))")
  assert run_filter("seeds", tree) == tree
