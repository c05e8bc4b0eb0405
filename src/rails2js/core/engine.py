"""
Orchestration Engine for Tree Rewriting.

This module provides the ``RewriteEngine``, the driver of a conversion run.
It coordinates unit detection, filter selection and the rewriter pipeline,
and owns the run-scoped metadata bus.

The pipeline for one file:

1.  **Ingestion**: s-expression text is read into a Node tree plus its
    comment side table (or a tree is handed in directly).
2.  **Unit Detection**: the tree is classified (model, controller, view,
    routes, seeds, test, other).
3.  **Rewriting**: the filters for that unit kind, plus the general-purpose
    filters, run in sequence. Each filter performs its unit's collection pass
    before rewriting it, and may publish facts on the bus.
4.  **Emission**: the final tree is rendered back to s-expression text for the
    printer collaborator.

For a whole program, ``run_program`` orders units so producers of bus facts
(models) run before consumers (controllers, tests).
"""

import logging
import traceback
from typing import Dict, List, Optional

from rails2js.config import RuntimeConfig
from rails2js.core.bus import MetadataBus, reset_bus
from rails2js.core.comments import CommentTable
from rails2js.core.context import RewriterContext
from rails2js.core.conversion_result import ConversionResult
from rails2js.core.hooks import available_filters, build_filters, load_filters
from rails2js.core.node import Node
from rails2js.core.rewriter import RewriterPass, RewriterPipeline
from rails2js.core.sexp import SexpSyntaxError, read_sexp_with_comments, to_sexp
from rails2js.core.tracer import get_tracer, reset_tracer
from rails2js.core.units import detect_unit, run_order
from rails2js.enums import UnitKind

logger = logging.getLogger(__name__)

# Filter owning each unit kind.
UNIT_FILTERS: Dict[UnitKind, str] = {
  UnitKind.MODEL: "model",
  UnitKind.CONTROLLER: "controller",
  UnitKind.VIEW: "view",
  UnitKind.ROUTES: "routes",
  UnitKind.SEEDS: "seeds",
  UnitKind.TEST: "testsuite",
}

# Filters that apply to every unit kind.
GENERAL_FILTERS = frozenset(["logger"])


class RewriteEngine:
  """
  The main conversion unit.

  One engine instance corresponds to one whole-program run: it holds the
  metadata bus shared by every file it converts.
  """

  def __init__(self, config: Optional[RuntimeConfig] = None, bus: Optional[MetadataBus] = None):
    """
    Initializes the Engine.

    Args:
        config: The runtime configuration. Defaults to ``RuntimeConfig()``.
        bus: The metadata bus to use. A fresh run-scoped bus is created when
            omitted.
    """
    self.config = config or RuntimeConfig()
    self.bus = bus if bus is not None else reset_bus(self.config.import_mode)
    self.strict_mode = self.config.strict_mode
    if self.config.plugin_paths:
      load_filters(extra_dirs=self.config.plugin_paths)

  def enabled_filters(self) -> List[str]:
    return list(self.config.filters) if self.config.filters is not None else available_filters()

  def select_filters(self, kind: UnitKind) -> List[RewriterPass]:
    """
    Instantiates the filters for one unit kind, in configured order.

    Args:
        kind: The detected unit kind.

    Returns:
        List[RewriterPass]: Fresh filter instances.
    """
    owner = UNIT_FILTERS.get(kind)
    names = [name for name in self.enabled_filters() if name == owner or name in GENERAL_FILTERS]
    return build_filters(names)

  def run(self, tree: Node, path: Optional[str] = None, comments: Optional[CommentTable] = None) -> ConversionResult:
    """
    Rewrites one unit.

    Args:
        tree: Root node of the parsed file.
        path: Source path, used for unit detection and import paths.
        comments: Comment side table from the parser.

    Returns:
        ConversionResult: The rewritten tree, its s-expression text and trace.

    Raises:
        Exception: Any filter error, when ``strict_mode`` is set.
    """
    reset_tracer()
    tracer = get_tracer()
    comments = comments if comments is not None else CommentTable()

    kind, name = detect_unit(tree, path)
    tracer.start_phase("Rewrite Pipeline", path or "<memory>")
    tracer.log_inspection(path or "<memory>", kind.value, name or "")
    logger.debug("engine: %s detected as %s '%s'", path or "<memory>", kind.value, name)

    context = RewriterContext(self.config, bus=self.bus, tracer=tracer, file_path=path, comments=comments)
    pipeline = RewriterPipeline(self.select_filters(kind))
    try:
      result_tree = pipeline.run(tree, context)
    except Exception as e:
      if self.strict_mode:
        raise
      tracer.log_warning(f"Filter failure: {e}")
      logger.debug(traceback.format_exc())
      tracer.end_phase()
      return ConversionResult(
        code=to_sexp(tree, indent=2, comments=comments),
        tree=tree,
        unit_kind=kind.value,
        unit_name=name,
        errors=[f"{type(e).__name__}: {e}"],
        success=False,
        trace_events=tracer.export(),
      )

    if result_tree is not tree:
      tracer.log_mutation(kind.value, name or "", "rewritten")
    tracer.end_phase()
    return ConversionResult(
      code=to_sexp(result_tree, indent=2, comments=comments),
      tree=result_tree,
      unit_kind=kind.value,
      unit_name=name,
      trace_events=tracer.export(),
    )

  def run_text(self, text: str, path: Optional[str] = None) -> ConversionResult:
    """
    Reads s-expression text and rewrites it.

    Malformed input produces a failed result (or raises in strict mode).
    """
    try:
      tree, comments = read_sexp_with_comments(text)
    except SexpSyntaxError as e:
      if self.strict_mode:
        raise
      return ConversionResult(code=text, errors=[f"Parse Error: {e}"], success=False)
    return self.run(tree, path, comments)

  def run_program(self, units: Dict[str, Node]) -> Dict[str, ConversionResult]:
    """
    Rewrites every unit of a program in dependency order.

    Models publish their facts first, then routes, controllers, views,
    seeds and tests consume them. Ties keep the given order.

    Args:
        units: Source path -> parsed tree.

    Returns:
        Dict[str, ConversionResult]: Results keyed by path, in run order.
    """
    ordered = sorted(units.items(), key=lambda item: run_order(detect_unit(item[1], item[0])[0]))
    results: Dict[str, ConversionResult] = {}
    for path, tree in ordered:
      results[path] = self.run(tree, path)
    return results

  def run_program_text(self, sources: Dict[str, str]) -> Dict[str, ConversionResult]:
    """Like :meth:`run_program`, for s-expression sources. Unreadable files fail individually."""
    trees: Dict[str, Node] = {}
    comment_tables: Dict[str, CommentTable] = {}
    results: Dict[str, ConversionResult] = {}
    for path, text in sources.items():
      try:
        trees[path], comment_tables[path] = read_sexp_with_comments(text)
      except SexpSyntaxError as e:
        if self.strict_mode:
          raise
        results[path] = ConversionResult(code=text, errors=[f"Parse Error: {e}"], success=False)

    ordered = sorted(trees, key=lambda p: run_order(detect_unit(trees[p], p)[0]))
    for path in ordered:
      results[path] = self.run(trees[path], path, comment_tables[path])
    return results
