"""
Tests for the S-Expression interchange format.

Verifies:
1. Scalars, symbols, strings and print hints are read correctly.
2. Rendering round-trips through the reader.
3. Comments attach to the following form.
4. Malformed input raises SexpSyntaxError with a position.
"""

import pytest

from rails2js.core.node import s
from rails2js.core.sexp import SexpSyntaxError, read_sexp, read_sexp_with_comments, to_sexp


def test_reads_scalars():
  node = read_sexp('(send nil :puts (str "a \\"b\\"") (int -3) (float 1.5) true)')
  assert node == s("send", None, "puts", s("str", 'a "b"'), s("int", -3), s("float", 1.5), True)


def test_reads_quoted_symbols():
  node = read_sexp('(send nil :"exists?")')
  assert node.children[1] == "exists?"


def test_reads_hint_suffixes():
  call = read_sexp("(send! (lvar :a) :first)")
  prop = read_sexp("(send. (const nil :Card) :closed)")
  awaited = read_sexp("(await! (const nil :Article) :all)")
  assert call.force_call and not call.force_property
  assert prop.force_property and not prop.force_call
  assert awaited.kind == "await" and awaited.force_call


def test_round_trip():
  tree = s(
    "begin",
    s("lvasgn", "x", s("send", s("const", None, "Article"), "find", s("int", 1)).with_hints(force_call=True)),
    s("str", "nil"),
    s("send", s("lvar", "x"), "title=", s("str", "with space")),
    s("sym", "with space"),
  )
  assert read_sexp(to_sexp(tree)) == tree
  assert read_sexp(to_sexp(tree, indent=2)) == tree


def test_single_line_rendering():
  assert to_sexp(s("send", None, "puts", s("str", "hi"))) == '(send nil :puts (str "hi"))'


def test_comments_attach_to_next_form():
  text = "; Loads one article\n; twice\n(begin\n  ; inner\n  (int 1)\n  (int 2))"
  tree, comments = read_sexp_with_comments(text)
  assert comments.get(tree) == ["Loads one article", "twice"]
  assert comments.get(tree.children[0]) == ["inner"]
  assert comments.get(tree.children[1]) == []
  rendered = to_sexp(tree, indent=2, comments=comments)
  assert rendered.startswith("; Loads one article\n; twice\n(begin")
  assert "; inner" in rendered


@pytest.mark.parametrize(
  "text",
  [
    "",
    "(send nil",
    "(int 1) (int 2)",
    "(send nil :a))",
    "(send nil bare)",
    "(send nil :a @)",
  ],
)
def test_malformed_input(text):
  with pytest.raises(SexpSyntaxError):
    read_sexp(text)


def test_error_carries_position():
  with pytest.raises(SexpSyntaxError) as info:
    read_sexp("(begin\n  (int 1)\n  @)")
  assert info.value.line == 3
