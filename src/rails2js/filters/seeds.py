"""
Seeds Filter.

``module Seeds; def self.run ... end; end`` becomes an exported module whose
``run`` is asynchronous: model operations in the body are await-colored and
every referenced model is imported.
"""

import logging
from typing import Any

from rails2js.core.hooks import register_filter
from rails2js.core.node import Node, body_statements, is_node, s
from rails2js.core.units import is_seeds_module
from rails2js.enums import UnitKind
from rails2js.filters.base import FilterBase, const_references

logger = logging.getLogger(__name__)


def has_run_method(body: Any) -> bool:
  return any(
    is_node(stmt, "defs") and is_node(stmt.children[0], "self") and stmt.children[1] == "run"
    for stmt in body_statements(body)
  )


@register_filter("seeds", order=50)
class SeedsFilter(FilterBase):
  """Lowers the seeds module."""

  def on_module(self, node: Node) -> Any:
    if self.unit is not None or not is_seeds_module(node) or not has_run_method(node.children[1]):
      return self.process_children(node)

    with self.unit_scope("Seeds", UnitKind.SEEDS):
      body = self.process(node.children[1])
      colored = self.color(body, mark_functions=True)
      models = [
        name for name in const_references(colored) if name != "Seeds" and self.colorer().oracle.is_model(name)
      ]
      exported = s("export", node.updated(children=[node.children[0], colored]))
      self.carry_comments(node, exported)
      logger.debug("seeds: importing %s", ", ".join(models) or "no models")
      return s("begin", *self.imports_for_models(models, from_dir="../app"), exported)
