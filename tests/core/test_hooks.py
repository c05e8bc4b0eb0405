"""
Tests for the filter registry and dynamic loader.

Verifies:
1. Built-in filters are registered lazily and listed in execution order.
2. Unknown names raise FilterNotFoundError.
3. External filter modules are loaded from plugin directories.
"""

import pytest

from rails2js.core import hooks
from rails2js.core.hooks import (
  FilterNotFoundError,
  available_filters,
  build_filters,
  get_filter,
  load_filters,
)
from rails2js.core.node import s
from rails2js.core.sexp import read_sexp
from rails2js.filters.base import FilterBase

BUILTIN_ORDER = ["model", "controller", "view", "routes", "seeds", "logger", "testsuite"]

PLUGIN_SOURCE = '''
from rails2js.core.hooks import register_filter
from rails2js.filters.base import FilterBase


@register_filter("shout", order=99)
class ShoutFilter(FilterBase):
  def on_str(self, node):
    return node.updated(children=[node.children[0].upper()])
'''


@pytest.fixture
def isolated_registry(monkeypatch):
  """Keeps plugin registrations out of the shared registry."""
  load_filters()
  monkeypatch.setattr(hooks, "_FILTERS", dict(hooks._FILTERS))
  monkeypatch.setattr(hooks, "_FILTER_ORDER", dict(hooks._FILTER_ORDER))


def test_builtin_filters_in_order():
  assert available_filters()[: len(BUILTIN_ORDER)] == BUILTIN_ORDER


def test_get_filter_sets_name():
  cls = get_filter("model")
  assert cls.name == "model"
  assert issubclass(cls, FilterBase)


def test_unknown_filter_raises():
  with pytest.raises(FilterNotFoundError):
    get_filter("nonexistent")


def test_build_filters_creates_fresh_instances():
  first, second = build_filters(["logger"]), build_filters(["logger"])
  assert first[0] is not second[0]
  assert [f.name for f in build_filters(["routes", "model"])] == ["routes", "model"]


def test_plugin_directory_loading(tmp_path, isolated_registry, context):
  (tmp_path / "shout.py").write_text(PLUGIN_SOURCE, encoding="utf-8")
  (tmp_path / "__init__.py").write_text("raise RuntimeError('never imported')\n", encoding="utf-8")

  load_filters(extra_dirs=[tmp_path])

  assert "shout" in available_filters()
  out = get_filter("shout")().transform(read_sexp('(send nil :puts (str "hi"))'), context)
  assert out == s("send", None, "puts", s("str", "HI"))


def test_broken_plugin_is_skipped(tmp_path, isolated_registry):
  (tmp_path / "broken.py").write_text("raise RuntimeError('boom')\n", encoding="utf-8")
  before = len(available_filters())
  assert load_filters(extra_dirs=[tmp_path]) == before


def test_missing_plugin_directory_is_ignored(tmp_path, isolated_registry):
  before = len(available_filters())
  assert load_filters(extra_dirs=[tmp_path / "absent"]) == before
