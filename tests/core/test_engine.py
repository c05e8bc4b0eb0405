"""
Tests for the RewriteEngine.

Verifies:
1. Whole-program runs order producers (models) before consumers.
2. Filter failures are recorded per file, or re-raised in strict mode.
3. Parse errors produce failed results.
4. Results carry the unit kind, rendered text and trace.
"""

import pytest

from rails2js.config import RuntimeConfig
from rails2js.core.engine import RewriteEngine
from rails2js.core.sexp import SexpSyntaxError, read_sexp
from rails2js.enums import UnitKind
from rails2js.filters.logger import LoggerFilter

MODEL = "(class (const nil :Article) (const nil :ApplicationRecord) (send nil :has_many (sym :comments)))"
LOGGING = '(send (send (const nil :Rails) :logger) :info (str "saved"))'


def _boom(self, tree, context):
  raise RuntimeError("boom")


def test_single_unit(engine):
  result = engine.run(read_sexp(LOGGING), "lib/util.rb")
  assert result.success
  assert result.unit_kind == UnitKind.OTHER.value
  assert result.tree == read_sexp('(send! (lvar :console) :info (str "saved"))')
  assert result.code == "(send!\n  (lvar :console)\n  :info\n  (str \"saved\"))"


def test_other_unit_passes_through_unchanged(engine):
  source = "(class (const nil :Helper) nil (def :names (args) (send (lvar :xs) :map (block_pass (sym :name)))))"
  tree = read_sexp(source)
  first = engine.run(tree, "lib/helper.rb")
  assert first.success
  assert first.tree == tree
  second = engine.run(first.tree, "lib/helper.rb")
  assert second.tree == first.tree


def test_trace_is_attached(engine):
  result = engine.run(read_sexp(LOGGING), "lib/util.rb")
  types = [e["type"] for e in result.trace_events]
  assert types[0] == "phase_start"
  assert "inspection" in types
  assert "ast_mutation" in types


def test_program_runs_models_first(engine):
  units = {"lib/util.rb": read_sexp(LOGGING), "app/models/article.rb": read_sexp(MODEL)}
  results = engine.run_program(units)
  assert list(results) == ["app/models/article.rb", "lib/util.rb"]
  assert results["app/models/article.rb"].unit_kind == "model"
  assert results["app/models/article.rb"].unit_name == "Article"
  assert engine.bus.is_model("Article") is True


def test_program_text_isolates_parse_errors(engine):
  results = engine.run_program_text({"lib/broken.rb": "(send nil", "app/models/article.rb": MODEL})
  assert results["app/models/article.rb"].success
  broken = results["lib/broken.rb"]
  assert not broken.success
  assert broken.errors[0].startswith("Parse Error:")
  assert broken.code == "(send nil"


def test_run_text_parse_error(engine):
  result = engine.run_text("(int 1) (int 2)")
  assert not result.success
  assert result.has_errors


def test_filter_failure_is_recorded(engine, monkeypatch):
  monkeypatch.setattr(LoggerFilter, "transform", _boom)
  tree = read_sexp(LOGGING)
  result = engine.run(tree, "lib/util.rb")
  assert not result.success
  assert result.errors == ["RuntimeError: boom"]
  assert result.tree is tree
  assert any(e["type"] == "analysis_warning" for e in result.trace_events)


def test_strict_mode_reraises(bus, monkeypatch):
  monkeypatch.setattr(LoggerFilter, "transform", _boom)
  strict = RewriteEngine(RuntimeConfig(strict_mode=True), bus=bus)
  with pytest.raises(RuntimeError, match="boom"):
    strict.run(read_sexp(LOGGING), "lib/util.rb")
  with pytest.raises(SexpSyntaxError):
    strict.run_text("(send nil")


def test_filter_selection_by_unit_kind(engine):
  assert [f.name for f in engine.select_filters(UnitKind.MODEL)] == ["model", "logger"]
  assert [f.name for f in engine.select_filters(UnitKind.OTHER)] == ["logger"]


def test_configured_filter_list_is_respected(bus):
  only_logger = RewriteEngine(RuntimeConfig(filters=["logger"]), bus=bus)
  assert [f.name for f in only_logger.select_filters(UnitKind.MODEL)] == ["logger"]
  result = only_logger.run(read_sexp(MODEL), "app/models/article.rb")
  assert result.tree == read_sexp(MODEL)
  assert "Article" not in bus
