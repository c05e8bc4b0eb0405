"""
Tests for the logger filter.
"""

import pytest

from rails2js.core.builders import call, lvar
from rails2js.core.node import s
from rails2js.core.sexp import read_sexp


@pytest.mark.parametrize(
  "source, level",
  [
    ('(send (send (const nil :Rails) :logger) :info (str "saved"))', "info"),
    ('(send (send nil :logger) :warn (str "saved"))', "warn"),
    ('(send (send nil :logger) :fatal (str "saved"))', "error"),
    ('(send (send nil :logger) :unknown (str "saved"))', "log"),
  ],
)
def test_logger_calls_map_to_console(run_filter, source, level):
  assert run_filter("logger", source) == call(lvar("console"), level, s("str", "saved"))


def test_nested_in_method_body(run_filter):
  out = run_filter(
    "logger",
    '(def :save (args) (begin (send (send nil :logger) :debug (str "x")) (int 1)))',
  )
  assert out.children[2].children[0] == call(lvar("console"), "debug", s("str", "x"))


def test_other_receivers_untouched(run_filter):
  tree = read_sexp('(send (lvar :log) :info (str "x"))')
  assert run_filter("logger", tree) == tree
  other = read_sexp('(send (send (const nil :Foo) :logger) :info (str "x"))')
  assert run_filter("logger", other) == other
