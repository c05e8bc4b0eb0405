"""
Tests for instance-variable to local substitution and self renaming.
"""

from rails2js.core.bindings import (
  assigned_locals,
  instance_variables,
  ivar_name,
  localize,
  record_param,
  rename_self,
)
from rails2js.core.node import s
from rails2js.core.sexp import read_sexp


def test_localize_every_ivar():
  tree = read_sexp("(begin (ivasgn :@article (send (const nil :Article) :new)) (send (ivar :@article) :save))")
  expected = read_sexp("(begin (lvasgn :article (send (const nil :Article) :new)) (send (lvar :article) :save))")
  assert localize(tree) == expected


def test_localize_restricted_names():
  tree = read_sexp("(array (ivar :@a) (ivar :@b))")
  assert localize(tree, ["a"]) == read_sexp("(array (lvar :a) (ivar :@b))")


def test_localize_rewrites_assigned_value():
  tree = read_sexp("(ivasgn :@copy (ivar :@original))")
  assert localize(tree) == read_sexp("(lvasgn :copy (lvar :original))")


def test_scans():
  tree = read_sexp(
    "(begin (ivasgn :@a (int 1)) (lvasgn :x (ivar :@b)) (send (ivar :@a) :save) (lvasgn :y (int 2)) (lvasgn :x (int 3)))"
  )
  assert instance_variables(tree) == ["a", "b"]
  assert assigned_locals(tree) == ["x", "y"]


def test_rename_self_and_helpers():
  tree = read_sexp("(send (self) :update (hash (pair (sym :owner) (self))))")
  record = record_param()
  assert record == s("lvar", "$record")
  assert rename_self(tree, record) == read_sexp('(send (lvar :"$record") :update (hash (pair (sym :owner) (lvar :"$record"))))')
  assert ivar_name("@x") == "x"
  assert ivar_name("x") == "x"
