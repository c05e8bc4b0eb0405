"""
Tests for the package-level convenience API.
"""

import pytest

import rails2js


def test_convert_returns_sexp_text():
  out = rails2js.convert('(send (send (const nil :Rails) :logger) :info (str "saved"))')
  assert out == '(send!\n  (lvar :console)\n  :info\n  (str "saved"))'


def test_convert_raises_on_unreadable_input():
  with pytest.raises(ValueError, match="Parse Error"):
    rails2js.convert("(send nil")


def test_version_is_exposed():
  assert rails2js.__version__
