"""
Tests for structural unit detection and run ordering.
"""

import pytest

from rails2js.core.sexp import read_sexp
from rails2js.core.units import detect_unit, run_order
from rails2js.enums import UnitKind

ROUTES = """
(block
  (send (send (send (const nil :Rails) :application) :routes) :draw)
  (args)
  (send nil :resources (sym :articles)))
"""


@pytest.mark.parametrize(
  "source, path, expected",
  [
    ("(class (const nil :Article) (const nil :ApplicationRecord) nil)", None, (UnitKind.MODEL, "Article")),
    (
      "(class (const nil :Legacy) (const (const nil :ActiveRecord) :Base) nil)",
      None,
      (UnitKind.MODEL, "Legacy"),
    ),
    (
      "(class (const nil :ArticlesController) (const nil :ApplicationController) nil)",
      None,
      (UnitKind.CONTROLLER, "ArticlesController"),
    ),
    (
      "(class (const nil :ArticleTest) (const (const nil :ActiveSupport) :TestCase) nil)",
      None,
      (UnitKind.TEST, "ArticleTest"),
    ),
    (ROUTES, "config/routes.rb", (UnitKind.ROUTES, "routes")),
    ("(module (const nil :Seeds) nil)", "db/seeds.rb", (UnitKind.SEEDS, "Seeds")),
    (
      '(begin (lvasgn :_buf (str "")) (lvar :_buf))',
      "app/views/articles/index.html.erb",
      (UnitKind.VIEW, "index"),
    ),
    ('(block (send nil :describe (str "x")) (args) nil)', "test/models/article_test.rb", (UnitKind.TEST, "article_test")),
    ('(send nil :puts (str "x"))', "lib/util.rb", (UnitKind.OTHER, "util")),
  ],
)
def test_detect_unit(source, path, expected):
  assert detect_unit(read_sexp(source), path) == expected


def test_namespaced_class_is_found():
  tree = read_sexp("(module (const nil :Admin) (class (const nil :User) (const nil :ApplicationRecord) nil))")
  assert detect_unit(tree) == (UnitKind.MODEL, "User")


def test_non_tree_is_other():
  assert detect_unit(None) == (UnitKind.OTHER, None)


def test_producers_run_before_consumers():
  kinds = sorted(
    [UnitKind.TEST, UnitKind.VIEW, UnitKind.CONTROLLER, UnitKind.MODEL, UnitKind.SEEDS, UnitKind.ROUTES],
    key=run_order,
  )
  assert kinds[0] == UnitKind.MODEL
  assert kinds.index(UnitKind.CONTROLLER) < kinds.index(UnitKind.TEST)
  assert run_order(UnitKind.OTHER) > run_order(UnitKind.TEST)
